"""
Smoke tests to verify all modules can be imported.
"""

def test_import_sandbox():
    import sandbox
    assert hasattr(sandbox, '__version__')


def test_import_fetch():
    import fetch
    assert hasattr(fetch, '__version__')


def test_import_console():
    import console
    assert hasattr(console, '__version__')


def test_import_playground():
    import playground
    assert hasattr(playground, '__version__')


def test_import_cli():
    from playground.cli import app
    assert app is not None
