"""
Иерархия исключений при чтении COMTRADE.

Все ошибки фатальны для текущего файла: частично разобранная конфигурация
или часть потока записей вызывающему коду не возвращаются.
"""

from typing import Optional


class ComtradeError(Exception):
    """Базовый класс всех ошибок разбора COMTRADE."""


class MalformedConfiguration(ComtradeError, ValueError):
    """Ошибка синтаксиса CFG: неверное поле, число полей или количество каналов."""

    def __init__(self, message: str, line: Optional[int] = None, field: Optional[str] = None):
        self.line = line
        self.field = field
        location = []
        if line is not None:
            location.append(f"строка {line}")
        if field is not None:
            location.append(f"поле '{field}'")
        if location:
            message = f"[CFG] {', '.join(location)}: {message}"
        else:
            message = f"[CFG] {message}"
        super().__init__(message)


class UnsupportedRevisionOrEncoding(ComtradeError, ValueError):
    """Неизвестная ревизия стандарта или формат файла данных."""

    def __init__(self, message: str, token: str = "", line: Optional[int] = None):
        self.token = token
        self.line = line
        if line is not None:
            message = f"строка {line}: {message}"
        super().__init__(f"[CFG] {message}: '{token}'")


class TruncatedOrMisalignedData(ComtradeError, ValueError):
    """Данные DAT обрезаны, не выровнены по размеру записи или не согласуются с CFG."""

    def __init__(self, message: str, record_index: Optional[int] = None):
        self.record_index = record_index
        if record_index is not None:
            message = f"запись {record_index}: {message}"
        super().__init__(f"[DAT] {message}")


class MissingRequiredSection(ComtradeError, ValueError):
    """В объединенном файле CFF нет обязательного раздела CFG или DAT."""

    def __init__(self, section: str):
        self.section = section
        super().__init__(f"[CFF] Отсутствует обязательный раздел {section}")


class MalformedContainer(ComtradeError, ValueError):
    """Некорректная структура объединенного файла CFF."""

    def __init__(self, message: str, offset: Optional[int] = None):
        self.offset = offset
        if offset is not None:
            message = f"смещение {offset}: {message}"
        super().__init__(f"[CFF] {message}")
