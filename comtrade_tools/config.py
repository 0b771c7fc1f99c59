import codecs
import io
from dataclasses import dataclass, fields, asdict
from typing import Any, Dict, Optional, TextIO, Union

import yaml


@dataclass(frozen=True)
class ReaderConfig:
    """Параметры чтения файлов COMTRADE."""
    # кодировка текстовых частей (CFG, ASCII DAT, HDR, INF), если переданы байты
    encoding: str = "utf-8"
    # ошибка при наличии данных после объявленного количества выборок
    strict_trailing_data: bool = False
    # использовать временные метки из DAT даже при заданной частоте дискретизации
    prefer_dat_timestamps: bool = False
    # ширина слова дискретных каналов в битах для двоичных форматов (None - по формату)
    status_word_bits: Optional[int] = None
    ignore_warnings: bool = False
    use_numpy_arrays: bool = True

    def __post_init__(self):
        try:
            codecs.lookup(self.encoding)
        except LookupError:
            raise ValueError(f"Неизвестная кодировка: {self.encoding}")
        if self.status_word_bits not in (None, 16, 32):
            raise ValueError(f"Ширина слова дискретных каналов должна быть 16 или 32, получено {self.status_word_bits}")
        for name in ("strict_trailing_data", "prefer_dat_timestamps", "ignore_warnings", "use_numpy_arrays"):
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise ValueError(f"Параметр {name} должен быть true или false, получено {value!r}")

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]]) -> "ReaderConfig":
        """Создает конфигурацию из словаря, отвергая неизвестные ключи."""
        if not values:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Неизвестные параметры конфигурации: {', '.join(unknown)}")
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(source: Union[str, TextIO, None] = None) -> ReaderConfig:
    """
    Загружает ReaderConfig из YAML.

    Args:
        source (str | TextIO | None): текст YAML или открытый текстовый поток.
            None или пустой документ дают значения по умолчанию.
    """
    if source is None:
        return ReaderConfig()
    if isinstance(source, str):
        source = io.StringIO(source)
    values = yaml.safe_load(source)
    if values is None:
        return ReaderConfig()
    if not isinstance(values, dict):
        raise ValueError("Конфигурация YAML должна быть словарем")
    # допускается вложение в раздел "reader"
    if set(values) == {"reader"}:
        values = values["reader"]
    return ReaderConfig.from_dict(values)
