from skillswap.cli.app import app


def main() -> None:
    """Entry point for skillswap command."""
    try:
        app()
    except SystemExit:
        raise
    except BaseException as e:
        raise SystemExit(1) from e


__all__ = ["app", "main"]
