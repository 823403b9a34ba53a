"""python -m pcp 入口"""

from pcp.cli import main

if __name__ == "__main__":
    main()
