"""Чтение осциллограмм в формате COMTRADE (IEEE C37.111) из буферов в памяти."""

from comtrade_tools.config import ReaderConfig, load_config
from comtrade_tools.core.comtrade import Comtrade
from comtrade_tools.core.constants import DataEncoding, Revision
from comtrade_tools.core.errors import (
    ComtradeError,
    MalformedConfiguration,
    MalformedContainer,
    MissingRequiredSection,
    TruncatedOrMisalignedData,
    UnsupportedRevisionOrEncoding,
)
from comtrade_tools.io.cfg_parser import parse_cfg
from comtrade_tools.io.cff_splitter import is_cff, split_cff, split_sources
from comtrade_tools.io.dat_reader import decode_records
from comtrade_tools.processing.reconstruction import reconstruct

__version__ = "0.3.0"
