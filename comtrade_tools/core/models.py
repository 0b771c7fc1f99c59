import datetime as dt
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from comtrade_tools.core.constants import (
    DEFAULT_MAX_VALUE,
    DEFAULT_MIN_VALUE,
    DEFAULT_MULTIPLIER,
    DEFAULT_OFFSET,
    DEFAULT_PRIMARY,
    DEFAULT_SECONDARY,
    DEFAULT_SKEW,
    DEFAULT_TIME_MULTIPLIER,
    TIME_BASE_MICROSEC,
    DataEncoding,
    LeapSecondStatus,
    Revision,
    ScalingMode,
)


@dataclass(frozen=True)
class AnalogChannel:
    """Хранит данные описания аналогового канала."""
    index: int
    name: str
    phase: str = ""
    circuit: str = ""
    unit: str = ""
    multiplier: float = DEFAULT_MULTIPLIER
    offset: float = DEFAULT_OFFSET
    # смещение выборки канала во времени, мкс
    skew: float = DEFAULT_SKEW
    min_value: float = DEFAULT_MIN_VALUE
    max_value: float = DEFAULT_MAX_VALUE
    primary: float = DEFAULT_PRIMARY
    secondary: float = DEFAULT_SECONDARY
    scaling: ScalingMode = ScalingMode.PRIMARY

    def scale(self, raw: Union[int, float]) -> float:
        """Переводит сырое значение выборки в физическую величину: a*x + b."""
        return raw * self.multiplier + self.offset


@dataclass(frozen=True)
class StatusChannel:
    """Хранит данные описания дискретного канала."""
    index: int
    name: str
    phase: str = ""
    circuit: str = ""
    # нормальное состояние: 0, 1 или None (не указано)
    normal_state: Optional[int] = None


@dataclass(frozen=True)
class SampleRateSegment:
    """Участок выборок с постоянной частотой дискретизации."""
    rate: float
    end_sample: int


@dataclass(frozen=True)
class TimeQuality:
    """
    Код качества времени (tmq_code) ревизии 2013 года.

    "0" - часы синхронизированы, "1".."9", "A", "B" - часы не синхронизированы,
    точность 10^-9 .. 10^1 с, "F" - отказ часов.
    """
    code: str

    @property
    def is_locked(self) -> bool:
        return self.code == "0"

    @property
    def is_failure(self) -> bool:
        return self.code == "F"

    @property
    def precision_exponent(self) -> Optional[int]:
        """Показатель степени 10 точности часов для несинхронизированного состояния."""
        if self.is_locked or self.is_failure:
            return None
        return int(self.code, 16) - 10


@dataclass(frozen=True)
class Configuration:
    """Разобранное содержимое файла CFG. Неизменяемо после создания."""
    revision: Revision
    station_name: str
    rec_dev_id: str
    channels_count: int
    analog_count: int
    status_count: int
    frequency: Optional[float]
    analog_channels: Tuple[AnalogChannel, ...]
    status_channels: Tuple[StatusChannel, ...]
    sample_rates: Tuple[SampleRateSegment, ...]
    start_timestamp: dt.datetime
    trigger_timestamp: dt.datetime
    encoding: DataEncoding
    timestamp_critical: bool = False
    time_base: float = TIME_BASE_MICROSEC
    time_multiplier: float = DEFAULT_TIME_MULTIPLIER
    # информация о ревизии стандарта 2013 года
    time_code: Optional[dt.timezone] = dt.timezone.utc
    local_code: Optional[dt.timezone] = dt.timezone.utc
    time_quality: Optional[TimeQuality] = None
    leap_second: Optional[LeapSecondStatus] = None

    @property
    def total_samples(self) -> int:
        """Ожидаемое общее количество выборок (последнее поле endsamp)."""
        if not self.sample_rates:
            return 0
        return self.sample_rates[-1].end_sample

    @property
    def trigger_offset(self) -> float:
        """Возвращает относительное время срабатывания в секундах."""
        return (self.trigger_timestamp - self.start_timestamp).total_seconds()

    @property
    def analog_channel_ids(self) -> Tuple[str, ...]:
        return tuple(channel.name for channel in self.analog_channels)

    @property
    def status_channel_ids(self) -> Tuple[str, ...]:
        return tuple(channel.name for channel in self.status_channels)

    def summary(self) -> str:
        """Возвращает строку с краткой информацией об атрибутах CFG."""
        header_line = "Каналы (всего,А,Д): {}A + {}D = {}"
        sample_line = "Частота дискретизации {} Гц до выборки #{}"
        interval_line = "От {} до {} с множителем времени = {}"
        format_line = "{} формат"

        frequency = "не указана" if self.frequency is None else f"{self.frequency} Гц"
        lines = [header_line.format(self.analog_count, self.status_count,
                                    self.channels_count),
                 f"Частота сети: {frequency}"]
        for segment in self.sample_rates:
            lines.append(sample_line.format(segment.rate, segment.end_sample))
        lines.append(interval_line.format(self.start_timestamp,
                                          self.trigger_timestamp,
                                          self.time_multiplier))
        lines.append(format_line.format(self.encoding.value))
        return "\n".join(lines)


@dataclass(frozen=True)
class Record:
    """
    Одна запись файла DAT в сыром виде.

    timestamp - сырое значение временной метки или None, если метка
    отсутствует (пустое поле ASCII или 0xFFFFFFFF в двоичных форматах).
    """
    sample_number: int
    timestamp: Optional[Union[int, float]]
    analog: Tuple[Union[int, float], ...]
    status: Tuple[int, ...]


@dataclass(frozen=True)
class Sample:
    """Восстановленная выборка: физические значения и время."""
    sample_number: int
    # время от начала записи, с
    time: float
    timestamp: dt.datetime
    analog: Tuple[float, ...]
    status: Tuple[int, ...]
