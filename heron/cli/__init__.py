"""
Heron CLI - code generation for controllers, services, modules, guards and
middleware.

Usage:
    heron generate controller Users
    heron generate service Users --scope request --output app/users
"""

__cli_name__ = "heron"


def main():
    """Wrapper to avoid eager import of __main__ which causes warnings with -m."""
    from .__main__ import main as _main
    return _main()
