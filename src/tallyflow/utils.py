def get_version() -> str:
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("tallyflow")
    except PackageNotFoundError:
        return "unknown"
