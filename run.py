"""
SchoolBooks — Double-click this file to start.
Opens your browser automatically.
"""
import sys
import os
import importlib.util

def check_flask():
    return importlib.util.find_spec('flask') is not None

def main():
    os.chdir(os.path.dirname(os.path.abspath(__file__)))

    if not check_flask():
        print("Flask is not installed. Run: pip install -e .")
        sys.exit(1)

    from app import main as run_app
    run_app()

if __name__ == '__main__':
    main()
