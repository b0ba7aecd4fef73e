"""
narrowcast/__main__.py
======================

``python -m narrowcast file.c.dump`` runs the addon, same as the
``narrowcast`` console script.
"""

from narrowcast.checkers import _main

if __name__ == "__main__":
    _main()
