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
from typing import List, Optional, Union

import numpy as np
import pandas as pd

from comtrade_tools.config import ReaderConfig
from comtrade_tools.core.models import Configuration
from comtrade_tools.io.cff_splitter import ComtradeSources, split_cff, split_sources
from comtrade_tools.io.cfg_parser import parse_cfg
from comtrade_tools.io.dat_reader import decode_records
from comtrade_tools.processing.reconstruction import reconstruct

logger = logging.getLogger(__name__)

BytesOrText = Union[str, bytes, bytearray, memoryview]


class Comtrade:
    """Разбирает и хранит данные Comtrade, переданные буферами в памяти."""

    def __init__(self, config: Optional[ReaderConfig] = None):
        """
        Конструктор объекта Comtrade.

        Args:
            config (ReaderConfig, optional): параметры чтения
                (по умолчанию: ReaderConfig()).
        """
        self.config = config or ReaderConfig()
        self._cfg: Optional[Configuration] = None

        # Данные файла DAT
        self._sample_numbers = self._new_array("i")
        self._time_values = self._new_array("f")
        self._timestamps: List[dt.datetime] = []
        self._analog_values = []
        self._status_values = []

        # Дополнительные данные CFF (или дополнительные файлы comtrade)
        self._hdr = None
        self._inf = None

    def _new_array(self, array_type: str, values=()):
        if not self.config.use_numpy_arrays:
            return list(values)
        dtype = np.float64 if array_type == "f" else np.int32
        return np.array(values, dtype=dtype)

    @property
    def cfg(self) -> Optional[Configuration]:
        """Возвращает разобранную конфигурацию (None до чтения)."""
        return self._cfg

    @property
    def hdr(self) -> Optional[str]:
        return self._hdr

    @property
    def inf(self) -> Optional[str]:
        return self._inf

    @property
    def station_name(self) -> str:
        return self._cfg.station_name

    @property
    def rec_dev_id(self) -> str:
        return self._cfg.rec_dev_id

    @property
    def analog_channel_ids(self) -> list:
        return list(self._cfg.analog_channel_ids)

    @property
    def status_channel_ids(self) -> list:
        return list(self._cfg.status_channel_ids)

    @property
    def sample_numbers(self):
        return self._sample_numbers

    @property
    def time(self):
        """Возвращает значения времени от начала записи, с."""
        return self._time_values

    @property
    def timestamps(self) -> List[dt.datetime]:
        """Возвращает абсолютные метки времени выборок."""
        return self._timestamps

    @property
    def analog(self) -> list:
        """Возвращает значения аналоговых каналов (физические величины), по одному массиву на канал."""
        return self._analog_values

    @property
    def status(self) -> list:
        """Возвращает значения дискретных каналов, по одному массиву на канал."""
        return self._status_values

    @property
    def total_samples(self) -> int:
        """Количество фактически прочитанных выборок."""
        return len(self._time_values)

    @property
    def trigger_time(self) -> float:
        """Относительное время срабатывания, с."""
        return self._cfg.trigger_offset

    def read(self, cfg: BytesOrText, dat: BytesOrText,
             hdr: Optional[BytesOrText] = None, inf: Optional[BytesOrText] = None) -> "Comtrade":
        """
        Читает содержимое файлов CFG и DAT (и необязательных HDR, INF).

        Args:
            cfg (str | bytes): содержимое файла CFG.
            dat (str | bytes): содержимое файла DAT (str допускается только для ASCII).
            hdr, inf (str | bytes, optional): содержимое файлов HDR и INF.
        """
        # состояние объекта меняется только после успешного чтения всех частей
        configuration = parse_cfg(cfg, config=self.config)
        records = decode_records(configuration, dat, self.config)
        data = self._extract_data(configuration, reconstruct(configuration, records, self.config))
        hdr_text = self._decode_text(hdr)
        inf_text = self._decode_text(inf)

        self._cfg = configuration
        (self._sample_numbers, self._time_values, self._timestamps,
         self._analog_values, self._status_values) = data
        self._hdr = hdr_text
        self._inf = inf_text
        return self

    def read_cff(self, buffer: BytesOrText) -> "Comtrade":
        """Читает объединенный файл CFF."""
        sections = {section.kind.value: section for section in split_cff(buffer)}
        dat_section = sections["DAT"]
        self.read(sections["CFG"].data, dat_section.data,
                  sections["HDR"].data if "HDR" in sections else None,
                  sections["INF"].data if "INF" in sections else None)
        # формат данных определяется CFG, заголовок раздела только сверяется
        declared = dat_section.declared_format
        if declared is not None and declared != self._cfg.encoding.value:
            logger.warning("[CFF] Формат раздела DAT '%s' не совпадает с форматом CFG '%s'",
                           declared, self._cfg.encoding.value)
        return self

    def read_sources(self, primary: BytesOrText, dat: Optional[BytesOrText] = None,
                     hdr: Optional[BytesOrText] = None,
                     inf: Optional[BytesOrText] = None) -> "Comtrade":
        """
        Читает запись из раздельных файлов или из CFF.

        Если dat не передан, primary разбирается как объединенный файл.
        """
        sources: ComtradeSources = split_sources(primary, dat, hdr, inf)
        return self.read(sources.cfg, sources.dat, sources.hdr, sources.inf)

    def _decode_text(self, content: Optional[BytesOrText]) -> Optional[str]:
        # HDR и INF - произвольный текст, ошибки кодировки не фатальны
        if content is None:
            return None
        if isinstance(content, str):
            text = content
        else:
            text = bytes(content).decode(self.config.encoding, errors="replace")
        if len(text.strip()) == 0:
            return None
        return text

    def _extract_data(self, configuration: Configuration, samples) -> tuple:
        """Собирает выборки в массивы: номера, время, метки, аналоговые и дискретные каналы."""
        sample_numbers, time_values, timestamps = [], [], []
        analog = [[] for _ in range(configuration.analog_count)]
        status = [[] for _ in range(configuration.status_count)]
        for sample in samples:
            sample_numbers.append(sample.sample_number)
            time_values.append(sample.time)
            timestamps.append(sample.timestamp)
            for i, value in enumerate(sample.analog):
                analog[i].append(value)
            for i, value in enumerate(sample.status):
                status[i].append(value)

        logger.debug("Прочитано %d выборок: %dA + %dD", len(time_values),
                     configuration.analog_count, configuration.status_count)
        return (self._new_array("i", sample_numbers),
                self._new_array("f", time_values),
                timestamps,
                [self._new_array("f", values) for values in analog],
                [self._new_array("i", values) for values in status])

    def cfg_summary(self) -> str:
        """Возвращает строку с краткой информацией об атрибутах CFG."""
        return self._cfg.summary()

    def to_dataframe(self) -> pd.DataFrame:
        """
        Преобразует загруженные данные осциллограммы в pandas DataFrame.

        Возвращает:
            pandas.DataFrame: DataFrame с временной колонкой и колонками для каждого
                              аналогового и дискретного канала.
        """
        if self.total_samples == 0:
            return pd.DataFrame()

        data = {"Time": self.time}

        for i, channel_name in enumerate(self.analog_channel_ids):
            # при совпадении имен добавляется суффикс
            if channel_name in data:
                data[f"{channel_name}_{i}"] = self.analog[i]
            else:
                data[channel_name] = self.analog[i]

        for i, channel_name in enumerate(self.status_channel_ids):
            if channel_name in data:
                data[f"{channel_name}_status_{i}"] = self.status[i]
            else:
                data[channel_name] = self.status[i]

        return pd.DataFrame(data)
