from enum import Enum


class Revision(Enum):
    """Ревизии стандарта COMTRADE."""
    YEAR_1991 = "1991"
    YEAR_1999 = "1999"
    YEAR_2013 = "2013"

    @classmethod
    def from_token(cls, token: str) -> "Revision":
        for revision in cls:
            if revision.value == token.strip():
                return revision
        raise ValueError(token)


class DataEncoding(Enum):
    """Форматы файла DAT. Значение - токен в строке ft файла CFG."""
    ASCII = "ASCII"
    BINARY16 = "BINARY"
    BINARY32 = "BINARY32"
    FLOAT32 = "FLOAT32"

    @classmethod
    def from_token(cls, token: str) -> "DataEncoding":
        # сравнение без учета регистра
        for encoding in cls:
            if encoding.value == token.strip().upper():
                return encoding
        raise ValueError(token)

    @property
    def is_binary(self) -> bool:
        return self is not DataEncoding.ASCII


class SectionType(Enum):
    """Типы разделов объединенного файла CFF в каноническом порядке."""
    CFG = "CFG"
    DAT = "DAT"
    HDR = "HDR"
    INF = "INF"


class ScalingMode(Enum):
    """Идентификатор первичных/вторичных значений аналогового канала (поле PS)."""
    PRIMARY = "P"
    SECONDARY = "S"


class LeapSecondStatus(Enum):
    NOT_PRESENT = 0
    ADDED = 1
    SUBTRACTED = 2
    NO_CAPABILITY = 3


# общий символ-разделитель полей данных файлов CFG и ASCII DAT
SEPARATOR = ","

# Специальное значение отсутствующей временной метки в двоичных форматах
TIMESTAMP_MISSING = 0xFFFFFFFF

# единицы временной базы
TIME_BASE_NANOSEC = 1E-9
TIME_BASE_MICROSEC = 1E-6

# Количество полей в строках описания каналов
ANALOG_FIELDS_1991 = 10
ANALOG_FIELDS_FULL = 13
STATUS_FIELDS_FULL = 5

# Значения по умолчанию для необязательных полей аналогового канала
DEFAULT_MULTIPLIER = 1.0
DEFAULT_OFFSET = 0.0
DEFAULT_SKEW = 0.0
DEFAULT_MIN_VALUE = -32767.0
DEFAULT_MAX_VALUE = 32767.0
DEFAULT_PRIMARY = 1.0
DEFAULT_SECONDARY = 1.0
DEFAULT_TIME_MULTIPLIER = 1.0

# Ширина полей двоичной записи DAT в байтах
SAMPLE_NUMBER_BYTES = 4
TIMESTAMP_BYTES = 4

# Заголовки разделов CFF, например "--- file type: DAT BINARY: 1234 ---"
CFF_HEADER_REXP = (
    rb"(?im)[ \t]*---[ \t]*file type:[ \t]*(?P<type>[a-z]+)"
    rb"(?:[ \t]+(?P<format>[a-z0-9]+))?[ \t]*(?::[ \t]*(?P<size>[0-9]+))?[ \t]*---[ \t]*\r?$"
)
