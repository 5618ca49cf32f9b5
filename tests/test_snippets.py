import pytest

from playground.snippets import decode_snippet, encode_snippet, extract_code

PAGE = """# Using results

Some prose first.

```bash
pip install ts_result
```

```python
from ts_result import Ok
print(Ok(1))
```

```python
print("second block")
```
"""


def test_extract_code_returns_first_block_in_language() -> None:
    assert extract_code(PAGE) == "from ts_result import Ok\nprint(Ok(1))\n"


def test_extract_code_respects_language() -> None:
    assert extract_code(PAGE, "bash") == "pip install ts_result\n"


def test_extract_code_without_block_is_empty() -> None:
    assert extract_code("no fences here") == ""
    assert extract_code(PAGE, "rust") == ""


def test_extract_code_does_not_match_language_prefix() -> None:
    raw = "```python3\nprint(1)\n```\n"
    assert extract_code(raw) == ""


def test_share_token_is_url_safe() -> None:
    token = encode_snippet("print('hi')  # ünïcode + slash/")

    assert all(char not in token for char in "+/= ")
    assert decode_snippet(token) == "print('hi')  # ünïcode + slash/"


def test_decode_snippet_accepts_unquoted_base64() -> None:
    assert decode_snippet("cHJpbnQoMSk=") == "print(1)"


@pytest.mark.parametrize("token", ["not base64!", "%FF%FE", "//8="])
def test_decode_snippet_rejects_malformed_tokens(token: str) -> None:
    with pytest.raises(ValueError, match="Invalid snippet token"):
        _ = decode_snippet(token)
