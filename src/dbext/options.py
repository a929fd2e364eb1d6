from dataclasses import dataclass

from dbext.utils import PARAMSTYLES

from libb import ConfigOptions, scriptname

__all__ = [
    'StatementOptions',
]


@dataclass
class StatementOptions(ConfigOptions):
    """Options

    - batch_size: default chunk size for execute_batch (0: flush once at the end)
    - paramstyle: override the driver's DB-API paramstyle
      (`qmark`, `numeric`, `named`, `format`, `pyformat`); None detects it
    - array_json: parse JSON text columns when reading arrays
    - appname: name used in log lines
    """
    batch_size: int = 0
    paramstyle: str = None
    array_json: bool = True
    appname: str = None

    def __post_init__(self):
        if self.paramstyle is not None and self.paramstyle not in PARAMSTYLES:
            raise ValueError(f'paramstyle must be one of: {list(PARAMSTYLES)}')
        if isinstance(self.batch_size, bool) or not isinstance(self.batch_size, int):
            raise ValueError('batch_size must be an int')
        self.appname = self.appname or scriptname() or 'python_console'
