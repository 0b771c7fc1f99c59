"""
Разделение объединенного файла COMTRADE (.cff) на логические разделы.

Файл CFF состоит из разделов, каждый начинается строкой заголовка:

    --- file type: CFG ---
    --- file type: DAT BINARY: 1234 ---
    --- file type: HDR ---
    --- file type: INF ---

Раздел с объявленным размером занимает ровно столько байтов после строки
заголовка, остальные разделы продолжаются до следующего заголовка.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from comtrade_tools.core.constants import CFF_HEADER_REXP, DataEncoding, SectionType
from comtrade_tools.core.errors import (
    MalformedContainer,
    MissingRequiredSection,
    TruncatedOrMisalignedData,
)

logger = logging.getLogger(__name__)

header_re = re.compile(CFF_HEADER_REXP)

BytesLike = Union[bytes, bytearray, memoryview]


@dataclass(frozen=True)
class Section:
    """Раздел файла CFF: тип, точный срез байтов и данные заголовка."""
    kind: SectionType
    data: bytes
    # смещение первого байта содержимого раздела в исходном буфере
    offset: int
    declared_format: Optional[str] = None
    declared_size: Optional[int] = None


@dataclass(frozen=True)
class ComtradeSources:
    """Содержимое логических файлов одной записи COMTRADE."""
    cfg: Union[str, bytes]
    dat: Union[str, bytes]
    hdr: Optional[Union[str, bytes]] = None
    inf: Optional[Union[str, bytes]] = None


def _as_bytes(buffer: Union[BytesLike, str]) -> bytes:
    if isinstance(buffer, str):
        return buffer.encode("utf-8")
    return bytes(buffer)


def _at_line_start(buffer: bytes, position: int) -> bool:
    return position == 0 or buffer[position - 1:position] in (b"\n", b"\r")


def _find_header(buffer: bytes, start: int):
    """Ищет следующую строку заголовка, начинающуюся с новой строки."""
    m = header_re.search(buffer, start)
    while m is not None and not _at_line_start(buffer, m.start()):
        m = header_re.search(buffer, m.start() + 1)
    return m


def _skip_line_end(buffer: bytes, position: int) -> int:
    if buffer[position:position + 2] == b"\r\n":
        return position + 2
    if buffer[position:position + 1] == b"\n":
        return position + 1
    return position


def is_cff(buffer: Union[BytesLike, str]) -> bool:
    """Проверяет, начинается ли буфер (после пробельных символов) с заголовка раздела CFF."""
    data = _as_bytes(buffer)
    position = len(data) - len(data.lstrip())
    m = header_re.match(data, position)
    return m is not None


def split_cff(buffer: Union[BytesLike, str]) -> Tuple[Section, ...]:
    """
    Разбивает буфер CFF на разделы.

    Returns:
        Tuple[Section, ...]: найденные разделы в каноническом порядке
            CFG, DAT, HDR, INF.

    Raises:
        MissingRequiredSection: нет раздела CFG или DAT.
        TruncatedOrMisalignedData: объявленный размер раздела выходит за конец буфера.
        MalformedContainer: неизвестный или повторный раздел, мусор вне разделов.
    """
    data = _as_bytes(buffer)
    sections: Dict[SectionType, Section] = {}

    m = _find_header(data, 0)
    if m is None:
        raise MalformedContainer("не найдено ни одного заголовка раздела")
    if len(data[:m.start()].strip()) > 0:
        raise MalformedContainer("данные перед первым заголовком раздела", 0)

    while m is not None:
        type_token = m.group("type").decode("ascii").upper()
        try:
            kind = SectionType(type_token)
        except ValueError:
            raise MalformedContainer(f"неизвестный тип раздела '{type_token}'", m.start()) from None
        if kind in sections:
            raise MalformedContainer(f"повторный раздел {kind.value}", m.start())

        fformat = m.group("format")
        fformat = fformat.decode("ascii").upper() if fformat is not None else None
        fsize = m.group("size")
        fsize = int(fsize) if fsize is not None else None
        start = _skip_line_end(data, m.end())

        if fsize is not None:
            end = start + fsize
            if end > len(data):
                raise TruncatedOrMisalignedData(
                    f"раздел {kind.value} объявляет {fsize} байт, доступно {len(data) - start}")
            # после раздела с известным размером допустимы только пробельные символы
            next_position = end
            while next_position < len(data) and data[next_position:next_position + 1].isspace():
                next_position += 1
            m = header_re.match(data, next_position) if next_position < len(data) else None
            if next_position < len(data) and m is None:
                raise MalformedContainer(f"данные после раздела {kind.value}", next_position)
        else:
            if kind is SectionType.DAT and fformat is not None and fformat != DataEncoding.ASCII.value:
                raise MalformedContainer(f"для двоичного раздела DAT ({fformat}) не указан размер", m.start())
            m = _find_header(data, start)
            end = m.start() if m is not None else len(data)

        sections[kind] = Section(kind=kind, data=data[start:end], offset=start,
                                 declared_format=fformat, declared_size=fsize)

    for required in (SectionType.CFG, SectionType.DAT):
        if required not in sections:
            raise MissingRequiredSection(required.value)

    logger.debug("CFF: найдены разделы %s",
                 ", ".join(f"{s.kind.value}[{len(s.data)} байт]" for s in sections.values()))
    return tuple(sections[kind] for kind in SectionType if kind in sections)


def split_sources(primary: Union[BytesLike, str], dat: Optional[Union[BytesLike, str]] = None,
                  hdr: Optional[Union[BytesLike, str]] = None,
                  inf: Optional[Union[BytesLike, str]] = None) -> ComtradeSources:
    """
    Возвращает содержимое логических файлов записи.

    Если dat не передан, primary разбирается как файл CFF; иначе primary -
    содержимое CFG и данные передаются без изменений.
    """
    if dat is not None:
        return ComtradeSources(cfg=primary, dat=dat, hdr=hdr, inf=inf)
    if not is_cff(primary):
        raise MissingRequiredSection(SectionType.DAT.value)
    sections = {section.kind: section.data for section in split_cff(primary)}
    return ComtradeSources(
        cfg=sections[SectionType.CFG],
        dat=sections[SectionType.DAT],
        hdr=sections.get(SectionType.HDR, hdr),
        inf=sections.get(SectionType.INF, inf),
    )
