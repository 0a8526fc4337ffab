import sys

from mysh.shell import Shell


def main():
    sys.exit(Shell().run())


if __name__ == "__main__":
    main()
