class ExplorerError(Exception):
    pass


class ConfigurationError(ExplorerError):
    pass


class DataSourceError(ExplorerError):
    pass
