"""Module entrypoint for `python -m cms_content_compiler`.

Delegates to the compiler CLI implementation.
"""

from .cli import main


if __name__ == "__main__":
    main()
