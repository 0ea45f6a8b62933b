"""Entry point for the flowdag CLI when run as ``python -m flowdag.cli``."""

if __name__ == "__main__":
    from flowdag.cli.main import main

    main()
