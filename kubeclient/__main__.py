"""
CLI entry point, when used as a module: `python -m kubeclient`.

Useful for debugging in the IDEs (use the start-mode "Module", module "kubeclient").
"""
from kubeclient import cli

if __name__ == '__main__':
    cli.main()
