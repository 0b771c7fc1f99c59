# -*- coding: utf-8 -*-
# MIT License

# Copyright (c) 2024 Evdakov Aleksey Evgenievich
# Создано на основе библиотеки "comtrade 0.1.2" (Copyright (c) 2018 David Rodrigues Parrini) предоставленной по ссылке "https://pypi.org/project/comtrade/"

# Данная лицензия разрешает лицам, получившим копию данного программного обеспечения и сопутствующей документации
# (далее – Программное обеспечение), безвозмездно использовать Программное обеспечение без ограничений, включая, но не ограничиваясь,
# правами на использование, копирование, изменение, слияние, публикацию, распространение, сублицензирование и/или продажу
# копий Программного обеспечения, а также лицам, которым предоставляется данное Программное обеспечение, при соблюдении следующих условий:

# Вышеуказанное уведомление об авторском праве и данное уведомление о разрешении должны быть включены во все
# копии или существенные части Программного обеспечения.

# ПРОГРАММНОЕ ОБЕСПЕЧЕНИЕ ПРЕДОСТАВЛЯЕТСЯ «КАК ЕСТЬ», БЕЗ КАКИХ-ЛИБО ГАРАНТИЙ, ЯВНЫХ ИЛИ ПОДРАЗУМЕВАЕМЫХ, ВКЛЮЧАЯ, НО НЕ ОГРАНИЧИВАЯСЬ,
# ГАРАНТИИ ТОВАРНОЙ ПРИГОДНОСТИ, СООТВЕТСТВИЯ ОПРЕДЕЛЕННОМУ НАЗНАЧЕНИЮ И ОТСУТСТВИЯ НАРУШЕНИЙ. НИ В КАКОМ СЛУЧАЕ
# АВТОРЫ ИЛИ ПРАВООБЛАДАТЕЛИ НЕ НЕСУТ ОТВЕТСТВЕННОСТИ ПО КАКИМ-ЛИБО ИСКАМ, УБЫТКАМ ИЛИ ДРУГИМ ТРЕБОВАНИЯМ, БУДЬ ТО
# В РЕЗУЛЬТАТЕ ДЕЙСТВИЯ ДОГОВОРА, ДЕЛИКТА ИЛИ ИНОГО, ВОЗНИКШИМ ИЗ, ВНЕ ИЛИ В СВЯЗИ С ПРОГРАММНЫМ ОБЕСПЕЧЕНИЕМ ИЛИ
# ИСПОЛЬЗОВАНИЕМ ИЛИ ИНЫМИ ДЕЙСТВИЯМИ С ПРОГРАММНЫМ ОБЕСПЕЧЕНИЕМ.

import logging
import math
import struct
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Union

from comtrade_tools.config import ReaderConfig
from comtrade_tools.core.constants import (
    SAMPLE_NUMBER_BYTES,
    SEPARATOR,
    TIMESTAMP_BYTES,
    TIMESTAMP_MISSING,
    DataEncoding,
)
from comtrade_tools.core.errors import TruncatedOrMisalignedData
from comtrade_tools.core.models import Configuration, Record
from comtrade_tools.io.cfg_parser import re_float, re_int

logger = logging.getLogger(__name__)

# формат аналогового значения в struct и его размер в байтах
ANALOG_FORMATS = {
    DataEncoding.BINARY16: ("h", 2),
    DataEncoding.BINARY32: ("i", 4),
    DataEncoding.FLOAT32: ("f", 4),
}
# формат слова дискретных каналов по ширине в битах
STATUS_WORD_FORMATS = {16: ("H", 2), 32: ("I", 4)}
# ширина слова дискретных каналов по умолчанию
STATUS_WORD_BITS = {
    DataEncoding.BINARY16: 16,
    DataEncoding.BINARY32: 32,
    DataEncoding.FLOAT32: 32,
}


@dataclass(frozen=True)
class RecordLayout:
    """
    Раскладка одной записи DAT, общая для всех форматов:
    номер выборки, временная метка, аналоговые значения, дискретные каналы.
    Для двоичных форматов различаются только ширина и тип полей.
    """
    encoding: DataEncoding
    analog_count: int
    status_count: int
    analog_format: str = ""
    analog_bytes: int = 0
    word_format: str = ""
    word_bits: int = 0
    word_bytes: int = 0

    @classmethod
    def for_configuration(cls, cfg: Configuration, status_word_bits: Optional[int] = None) -> "RecordLayout":
        encoding = cfg.encoding
        if encoding is DataEncoding.ASCII:
            return cls(encoding, cfg.analog_count, cfg.status_count)
        analog_format, analog_bytes = ANALOG_FORMATS[encoding]
        word_bits = status_word_bits or STATUS_WORD_BITS[encoding]
        word_format, word_bytes = STATUS_WORD_FORMATS[word_bits]
        return cls(encoding, cfg.analog_count, cfg.status_count,
                   analog_format, analog_bytes, word_format, word_bits, word_bytes)

    @property
    def status_words(self) -> int:
        """Количество слов, в которые упакованы дискретные каналы."""
        if self.word_bits == 0:
            return 0
        return math.ceil(self.status_count / self.word_bits)

    @property
    def field_count(self) -> int:
        """Количество полей строки ASCII."""
        return 2 + self.analog_count + self.status_count

    @property
    def struct_format(self) -> str:
        # все двоичные форматы - little-endian без выравнивания
        return (f"<II{self.analog_count}{self.analog_format}"
                f"{self.status_words}{self.word_format}")

    @property
    def record_size(self) -> int:
        """Размер записи в байтах (для ASCII - 0, записи переменной длины)."""
        if not self.encoding.is_binary:
            return 0
        return (SAMPLE_NUMBER_BYTES + TIMESTAMP_BYTES + self.analog_count * self.analog_bytes
                + self.status_words * self.word_bytes)

    def unpack_status(self, words: Sequence[int]) -> tuple:
        """Извлекает биты дискретных каналов из упакованных слов."""
        bits = self.word_bits
        return tuple((words[ichannel // bits] >> (ichannel % bits)) & 1
                     for ichannel in range(self.status_count))

    def record_from_values(self, values: Sequence) -> Record:
        """Собирает Record из кортежа, распакованного struct."""
        ts_value = values[1]
        analog_end = 2 + self.analog_count
        return Record(
            sample_number=values[0],
            timestamp=None if ts_value == TIMESTAMP_MISSING else ts_value,
            analog=tuple(values[2:analog_end]),
            status=self.unpack_status(values[analog_end:]),
        )


def _parse_number(token: str, irec: int, what: str) -> Union[int, float]:
    if re_int.fullmatch(token) is not None:
        return int(token)
    if re_float.fullmatch(token) is not None:
        return float(token)
    raise TruncatedOrMisalignedData(f"некорректное значение {what}: '{token}'", irec)


def _decode_ascii(payload: Union[str, bytes, bytearray, memoryview], encoding: str) -> str:
    if isinstance(payload, str):
        return payload
    data = bytes(payload)
    try:
        return data.decode(encoding)
    except UnicodeDecodeError as exc:
        # номер строки (с 0) с ошибочным байтом
        irec = data[:exc.start].count(b"\n")
        raise TruncatedOrMisalignedData(f"данные не соответствуют кодировке {encoding}: {exc.reason}",
                                        irec) from None


def _iter_binary(layout: RecordLayout, payload: memoryview, count: int) -> Iterator[Record]:
    row_reader = struct.Struct(layout.struct_format)
    for values in row_reader.iter_unpack(payload[:count * layout.record_size]):
        yield layout.record_from_values(values)


def _decode_binary(cfg: Configuration, payload: Union[bytes, bytearray, memoryview],
                   config: ReaderConfig) -> Iterator[Record]:
    layout = RecordLayout.for_configuration(cfg, config.status_word_bits)
    record_size = layout.record_size
    total = cfg.total_samples
    payload = memoryview(payload).cast("B")
    length = len(payload)

    n_full, remainder = divmod(length, record_size)
    if n_full >= total:
        trailing = length - total * record_size
        if trailing > 0:
            message = f"{trailing} байт после {total} объявленных выборок"
            if config.strict_trailing_data:
                raise TruncatedOrMisalignedData(message, total)
            logger.warning("[DAT] %s игнорируются", message)
        count = total
    elif remainder != 0:
        raise TruncatedOrMisalignedData(
            f"длина данных {length} байт не кратна размеру записи {record_size} байт", n_full)
    else:
        logger.warning("[DAT] Прочитано %d записей из %d объявленных в CFG", n_full, total)
        count = n_full

    logger.debug("DAT %s: запись %d байт (%s), %d записей",
                 cfg.encoding.value, record_size, layout.struct_format, count)
    return _iter_binary(layout, payload, count)


def _iter_ascii(layout: RecordLayout, lines: List[str], total: int,
                strict: bool) -> Iterator[Record]:
    analog_end = 2 + layout.analog_count
    irec = 0
    for line in lines:
        if len(line.strip()) == 0:
            continue
        if irec >= total:
            message = f"строки после {total} объявленных выборок"
            if strict:
                raise TruncatedOrMisalignedData(message, irec)
            logger.warning("[DAT] %s игнорируются", message)
            return

        values = [value.strip() for value in line.split(SEPARATOR)]
        if len(values) != layout.field_count:
            raise TruncatedOrMisalignedData(
                f"ожидалось {layout.field_count} полей, получено {len(values)}", irec)

        if re_int.fullmatch(values[0]) is None:
            raise TruncatedOrMisalignedData(f"некорректный номер выборки: '{values[0]}'", irec)
        sample_number = int(values[0])
        if sample_number < 1:
            raise TruncatedOrMisalignedData(f"номер выборки должен быть не меньше 1: {sample_number}", irec)
        timestamp = None if len(values[1]) == 0 else _parse_number(values[1], irec, "временной метки")
        # пустое аналоговое значение - отсутствующие данные
        analog = tuple(float("nan") if len(token) == 0 else _parse_number(token, irec, "аналогового канала")
                       for token in values[2:analog_end])
        status = []
        for token in values[analog_end:]:
            if token not in ("0", "1"):
                raise TruncatedOrMisalignedData(f"некорректное значение дискретного канала: '{token}'", irec)
            status.append(int(token))

        yield Record(sample_number=sample_number, timestamp=timestamp,
                     analog=analog, status=tuple(status))
        irec += 1

    if irec < total:
        logger.warning("[DAT] Прочитано %d записей из %d объявленных в CFG", irec, total)


def decode_records(cfg: Configuration, payload: Union[str, bytes, bytearray, memoryview],
                   config: Optional[ReaderConfig] = None) -> Iterator[Record]:
    """
    Возвращает ленивую последовательность записей файла DAT.

    Для двоичных форматов длина данных проверяется до выдачи первой записи.
    Для ASCII ошибки строки возникают при достижении этой строки.

    Args:
        cfg (Configuration): разобранный CFG, определяет раскладку записи.
        payload (str | bytes): содержимое DAT (для ASCII допускается текст).
        config (ReaderConfig, optional): параметры чтения.
    """
    config = config or ReaderConfig()
    if cfg.encoding is DataEncoding.ASCII:
        text = _decode_ascii(payload, config.encoding)
        layout = RecordLayout.for_configuration(cfg)
        return _iter_ascii(layout, text.splitlines(), cfg.total_samples, config.strict_trailing_data)
    if isinstance(payload, str):
        raise TypeError(f"Данные формата {cfg.encoding.value} должны передаваться байтами")
    return _decode_binary(cfg, payload, config)
