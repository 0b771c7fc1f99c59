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


import datetime as dt
import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence, Tuple, Union

import numpy as np

from comtrade_tools.config import ReaderConfig
from comtrade_tools.core.errors import TruncatedOrMisalignedData
from comtrade_tools.core.models import AnalogChannel, Configuration, Record, Sample

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _RateSpan:
    rate: float
    # номер последней выборки предыдущего участка (0 для первого)
    first_after: int
    end_sample: int
    # время от начала записи до первой выборки участка, с
    start_time: float


class SampleRateTable:
    """
    Таблица участков частоты дискретизации с накопленным временем начала участков.

    Время выборки n (с 1) на участке k:
        t = sum_{j<k} (e_j - e_{j-1}) / r_j + (n - 1 - e_{k-1}) / r_k
    """

    def __init__(self, cfg: Configuration):
        spans = []
        start_time = 0.0
        first_after = 0
        for segment in cfg.sample_rates:
            spans.append(_RateSpan(segment.rate, first_after, segment.end_sample, start_time))
            if segment.rate > 0:
                start_time += (segment.end_sample - first_after) / segment.rate
            first_after = segment.end_sample
        self._spans: Tuple[_RateSpan, ...] = tuple(spans)

    @property
    def last_sample(self) -> int:
        return self._spans[-1].end_sample if self._spans else 0

    def locate(self, sample_number: int, irec: int) -> _RateSpan:
        """Находит участок, содержащий выборку (прямой перебор, участков мало)."""
        if sample_number < 1:
            raise TruncatedOrMisalignedData(f"номер выборки {sample_number} меньше 1", irec)
        for span in self._spans:
            if sample_number <= span.end_sample:
                return span
        raise TruncatedOrMisalignedData(
            f"номер выборки {sample_number} больше последней выборки таблицы частот {self.last_sample}", irec)

    def time_of(self, sample_number: int, irec: int) -> float:
        """Время выборки от начала записи, вычисленное по таблице частот, с."""
        span = self.locate(sample_number, irec)
        if span.rate == 0:
            raise TruncatedOrMisalignedData(
                "отсутствует временная метка и не указана частота дискретизации", irec)
        if span.first_after == 0:
            # без накопления, чтобы время первого участка было точно (n - 1) / rate
            return (sample_number - 1) / span.rate
        return span.start_time + (sample_number - 1 - span.first_after) / span.rate


def scale_analog(raw: Union[Sequence[float], np.ndarray], channel: AnalogChannel) -> np.ndarray:
    """Векторное преобразование сырых значений канала: a * x + b."""
    values = np.asarray(raw, dtype=np.float64)
    return values * channel.multiplier + channel.offset


def reconstruct(cfg: Configuration, records: Iterable[Record],
                config: Optional[ReaderConfig] = None) -> Iterator[Sample]:
    """
    Восстанавливает физические значения и время для каждой записи DAT.

    Аналоговые значения: raw * a + b (выбор первичных/вторичных величин
    остается за вызывающим кодом, поле scaling канала не применяется).
    Время: при timestamp_critical (или prefer_dat_timestamps) - метка
    из записи, умноженная на временную базу и множитель времени; иначе
    и при отсутствующей метке - по таблице частот дискретизации.

    Args:
        cfg (Configuration): разобранный CFG.
        records (Iterable[Record]): записи, например из decode_records().
        config (ReaderConfig, optional): параметры чтения.

    Yields:
        Sample: восстановленная выборка.
    """
    config = config or ReaderConfig()
    table = SampleRateTable(cfg)
    use_timestamps = cfg.timestamp_critical or config.prefer_dat_timestamps
    ts_scale = cfg.time_base * cfg.time_multiplier
    channels = cfg.analog_channels
    fallback_count = 0

    for irec, record in enumerate(records):
        if len(record.analog) != len(channels):
            raise TruncatedOrMisalignedData(
                f"ожидалось {len(channels)} аналоговых значений, получено {len(record.analog)}", irec)

        # выход за таблицу частот - ошибка независимо от источника времени
        table.locate(record.sample_number, irec)
        if use_timestamps and record.timestamp is not None:
            time = record.timestamp * ts_scale
        else:
            if use_timestamps:
                fallback_count += 1
            time = table.time_of(record.sample_number, irec)

        yield Sample(
            sample_number=record.sample_number,
            time=time,
            timestamp=cfg.start_timestamp + dt.timedelta(seconds=time),
            analog=tuple(channel.scale(raw) for channel, raw in zip(channels, record.analog)),
            status=record.status,
        )

    if fallback_count > 0:
        logger.debug("Для %d записей без временной метки время вычислено по частоте дискретизации",
                     fallback_count)
