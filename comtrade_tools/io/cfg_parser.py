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
import re
import warnings
from typing import List, Optional, Tuple, Union

from comtrade_tools.config import ReaderConfig
from comtrade_tools.core.constants import (
    ANALOG_FIELDS_1991,
    ANALOG_FIELDS_FULL,
    DEFAULT_MAX_VALUE,
    DEFAULT_MIN_VALUE,
    DEFAULT_MULTIPLIER,
    DEFAULT_OFFSET,
    DEFAULT_PRIMARY,
    DEFAULT_SECONDARY,
    DEFAULT_SKEW,
    DEFAULT_TIME_MULTIPLIER,
    SEPARATOR,
    STATUS_FIELDS_FULL,
    TIME_BASE_MICROSEC,
    TIME_BASE_NANOSEC,
    DataEncoding,
    LeapSecondStatus,
    Revision,
    ScalingMode,
)
from comtrade_tools.core.errors import MalformedConfiguration, UnsupportedRevisionOrEncoding
from comtrade_tools.core.models import (
    AnalogChannel,
    Configuration,
    SampleRateSegment,
    StatusChannel,
    TimeQuality,
)

logger = logging.getLogger(__name__)

# регулярные выражения для временной метки
re_date = re.compile(r"([0-9]{1,2})/([0-9]{1,2})/([0-9]{2,4})")
re_time = re.compile(r"([0-9]{1,2}):([0-9]{2}):([0-9]{2})(\.([0-9]{1,12}))?")
# числа разбираются независимо от локали: только точка как десятичный разделитель
re_int = re.compile(r"[+-]?[0-9]+")
re_float = re.compile(r"[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?")
re_time_offset = re.compile(r"([+-]?)([0-9]{1,2})(?:[hH]([0-9]{1,2}))?")

TMQ_CODES = "0123456789ABF"

# Предупреждение о дате и времени с наносекундным разрешением
WARNING_DATETIME_NANO = "Неподдерживаемые объекты datetime с наносекундным \
разрешением. Используются усеченные значения."
# Дата и время с годом 0, месяцем 0 и/или днем 0.
WARNING_MINDATE = "Отсутствуют значения даты. Используются минимальные значения: {}."
# Строки после последнего поля ревизии
WARNING_EXTRA_LINES = "Строки CFG после {} игнорируются для ревизии {}."

_REQUIRED = object()


def _read_sep_values(line: str) -> Tuple[str, ...]:
    return tuple(cell.strip() for cell in line.split(SEPARATOR))


def _pad(values: Tuple[str, ...], expected: int, default: str = "") -> List[str]:
    return [values[i] if i < len(values) else default for i in range(expected)]


def _to_int(value: str, line: int, field: str, default=_REQUIRED):
    value = value.strip()
    if len(value) == 0 and default is not _REQUIRED:
        return default
    if re_int.fullmatch(value) is None:
        raise MalformedConfiguration(f"некорректное целое значение '{value}'", line, field)
    return int(value)


def _to_float(value: str, line: int, field: str, default=_REQUIRED):
    value = value.strip()
    if len(value) == 0 and default is not _REQUIRED:
        return default
    if re_float.fullmatch(value) is None:
        raise MalformedConfiguration(f"некорректное вещественное значение '{value}'", line, field)
    return float(value)


def fill_with_zeros_to_the_right(number_str: str, width: int) -> str:
    actual_len = len(number_str)
    if actual_len < width:
        return number_str + "0" * (width - actual_len)
    return number_str


def _parse_time_offset(value: str, line: int, field: str) -> Optional[dt.timezone]:
    """
    Разбирает смещение времени ревизии 2013 года.

    "-4" - 4 часа к западу от UTC, "+10h30" - 10 ч 30 мин к востоку,
    "0" - UTC, "x" - поле не применяется (None). Пустое значение - UTC.
    """
    value = value.strip()
    if len(value) == 0:
        return dt.timezone.utc
    if value.lower() == "x":
        return None
    m = re_time_offset.fullmatch(value)
    if m is None:
        raise MalformedConfiguration(f"некорректное смещение времени '{value}'", line, field)
    sign = -1 if m.group(1) == "-" else 1
    hours = int(m.group(2))
    minutes = int(m.group(3)) if m.group(3) is not None else 0
    if hours > 23 or minutes > 59:
        raise MalformedConfiguration(f"смещение времени вне диапазона '{value}'", line, field)
    return dt.timezone(sign * dt.timedelta(hours=hours, minutes=minutes))


class CfgParser:
    """
    Построчный разбор содержимого файла CFG.

    Объект одноразовый: состояние (номер текущей строки) хранится
    только на время вызова parse().
    """

    def __init__(self, text: str, config: Optional[ReaderConfig] = None):
        self.config = config or ReaderConfig()
        # метка порядка байтов (BOM) не является частью первой строки
        self._lines = text.lstrip("\ufeff").splitlines()
        # завершающие пустые строки не считаются полями
        while self._lines and len(self._lines[-1].strip()) == 0:
            self._lines.pop()
        self._cursor = 0

    @property
    def line_number(self) -> int:
        """Номер (с 1) последней прочитанной строки."""
        return self._cursor

    def _warn(self, message: str) -> None:
        logger.warning(message)
        if not self.config.ignore_warnings:
            warnings.warn(Warning(message))

    def _remaining(self) -> int:
        return len(self._lines) - self._cursor

    def _read_line(self, what: str) -> str:
        """Читает обязательную строку."""
        if self._cursor >= len(self._lines):
            raise MalformedConfiguration(f"неожиданный конец файла, ожидалось: {what}",
                                         self._cursor + 1, what)
        line = self._lines[self._cursor]
        self._cursor += 1
        return line

    def _read_optional_line(self) -> Optional[str]:
        """Читает необязательную завершающую строку; None - строк больше нет."""
        if self._cursor >= len(self._lines):
            return None
        line = self._lines[self._cursor]
        self._cursor += 1
        return line

    def parse(self) -> Configuration:
        # Первая строка: информация о станции, устройстве и ревизии стандарта comtrade
        station_name, rec_dev_id, revision = self._parse_station_line(self._read_line("station_name"))

        # Вторая строка: количество каналов и их тип
        channels_count, analog_count, status_count = self._parse_channel_counts(
            self._read_line("TT,##A,##D"))

        # Строки описания аналоговых каналов
        analog_channels = []
        has_ratio_fields = False
        for ichn in range(analog_count):
            channel, full = self._parse_analog_channel(self._read_line(f"A{ichn + 1}"), ichn)
            analog_channels.append(channel)
            has_ratio_fields = has_ratio_fields or full

        # Строки описания дискретных каналов
        status_channels = [self._parse_status_channel(self._read_line(f"D{ichn + 1}"), ichn)
                           for ichn in range(status_count)]

        # Строка частоты сети (в ревизии 1991 года может быть пустой)
        line = self._read_line("lf")
        frequency = _to_float(line, self.line_number, "lf", None)

        sample_rates, timestamp_critical = self._parse_sample_rates()

        if revision is None:
            revision = self._infer_revision(has_ratio_fields)

        # Время первой точки данных и время срабатывания
        start_timestamp, start_nano = self._parse_timestamp(self._read_line("start"), revision, "start")
        trigger_timestamp, trigger_nano = self._parse_timestamp(self._read_line("trigger"), revision, "trigger")
        time_base = TIME_BASE_NANOSEC if (start_nano or trigger_nano) else TIME_BASE_MICROSEC

        # Тип файла DAT
        line = self._read_line("ft").strip()
        if len(line) == 0:
            raise MalformedConfiguration("не указан формат файла данных", self.line_number, "ft")
        try:
            encoding = DataEncoding.from_token(line)
        except ValueError:
            raise UnsupportedRevisionOrEncoding("неподдерживаемый формат файла данных",
                                                line, self.line_number) from None

        time_multiplier = DEFAULT_TIME_MULTIPLIER
        time_code = local_code = dt.timezone.utc
        time_quality = None
        leap_second = None

        # Множитель временной метки
        if revision in (Revision.YEAR_1999, Revision.YEAR_2013):
            line = self._read_optional_line()
            if line is not None:
                time_multiplier = _to_float(line, self.line_number, "timemult", DEFAULT_TIME_MULTIPLIER)
                if time_multiplier <= 0:
                    raise MalformedConfiguration(f"множитель времени должен быть положительным: {line.strip()}",
                                                 self.line_number, "timemult")

        if revision == Revision.YEAR_2013:
            # time_code и local_code
            line = self._read_optional_line()
            if line is not None:
                values = _pad(_read_sep_values(line), 2)
                time_code = _parse_time_offset(values[0], self.line_number, "time_code")
                local_code = _parse_time_offset(values[1], self.line_number, "local_code")

            # tmq_code и leapsec
            line = self._read_optional_line()
            if line is not None:
                time_quality, leap_second = self._parse_time_quality(line)

        if self._remaining() > 0:
            self._warn(WARNING_EXTRA_LINES.format(self.line_number, revision.value))

        cfg = Configuration(
            revision=revision,
            station_name=station_name,
            rec_dev_id=rec_dev_id,
            channels_count=channels_count,
            analog_count=analog_count,
            status_count=status_count,
            frequency=frequency,
            analog_channels=tuple(analog_channels),
            status_channels=tuple(status_channels),
            sample_rates=tuple(sample_rates),
            start_timestamp=start_timestamp,
            trigger_timestamp=trigger_timestamp,
            encoding=encoding,
            timestamp_critical=timestamp_critical,
            time_base=time_base,
            time_multiplier=time_multiplier,
            time_code=time_code,
            local_code=local_code,
            time_quality=time_quality,
            leap_second=leap_second,
        )
        logger.debug("CFG разобран: станция '%s', ревизия %s, %dA + %dD, %d выборок, формат %s",
                     station_name, revision.value, analog_count, status_count,
                     cfg.total_samples, encoding.value)
        return cfg

    def _parse_station_line(self, line: str) -> Tuple[str, str, Optional[Revision]]:
        """Возвращает станцию, устройство и ревизию (None - ревизию нужно определить)."""
        packed = _read_sep_values(line)
        if len(packed) < 2:
            raise MalformedConfiguration("ожидалось не менее 2 полей", self.line_number, "rec_dev_id")
        if len(packed) == 2:
            return packed[0], packed[1], None

        rev_token = packed[-1]
        if len(packed) > 3:
            # защита от запятых в имени устройства
            try:
                revision = Revision.from_token(rev_token)
            except ValueError:
                raise MalformedConfiguration(f"ожидалось не более 3 полей, получено {len(packed)}",
                                             self.line_number, "rev_year") from None
            return packed[0], SEPARATOR.join(packed[1:-1]), revision

        if len(rev_token) == 0:
            return packed[0], packed[1], None
        try:
            revision = Revision.from_token(rev_token)
        except ValueError:
            raise UnsupportedRevisionOrEncoding("неизвестная ревизия стандарта",
                                                rev_token, self.line_number) from None
        return packed[0], packed[1], revision

    def _parse_channel_counts(self, line: str) -> Tuple[int, int, int]:
        packed = _read_sep_values(line)
        if len(packed) != 3:
            raise MalformedConfiguration(f"ожидалось 3 поля, получено {len(packed)}",
                                         self.line_number, "TT,##A,##D")
        totchn, achn, schn = packed
        channels_count = _to_int(totchn, self.line_number, "TT")
        if len(achn) == 0 or achn[-1].upper() != "A":
            raise MalformedConfiguration(f"ожидался суффикс 'A': '{achn}'", self.line_number, "##A")
        if len(schn) == 0 or schn[-1].upper() != "D":
            raise MalformedConfiguration(f"ожидался суффикс 'D': '{schn}'", self.line_number, "##D")
        analog_count = _to_int(achn[:-1], self.line_number, "##A")
        status_count = _to_int(schn[:-1], self.line_number, "##D")
        if min(channels_count, analog_count, status_count) < 0:
            raise MalformedConfiguration("количество каналов не может быть отрицательным",
                                         self.line_number, "TT,##A,##D")
        if analog_count + status_count != channels_count:
            raise MalformedConfiguration(
                f"{analog_count}A + {status_count}D не равно общему количеству каналов {channels_count}",
                self.line_number, "TT")
        return channels_count, analog_count, status_count

    def _parse_analog_channel(self, line: str, ichn: int) -> Tuple[AnalogChannel, bool]:
        """
        Формат строки: An,ch_id,ph,ccbm,uu,a,b,skew,min,max[,primary,secondary,PS]

        Возвращает канал и признак наличия полей primary/secondary/PS.
        """
        n_line = self.line_number
        packed = _read_sep_values(line)
        if len(packed) > ANALOG_FIELDS_FULL:
            raise MalformedConfiguration(
                f"ожидалось не более {ANALOG_FIELDS_FULL} полей, получено {len(packed)}", n_line, "An")
        if len(packed) < 2:
            raise MalformedConfiguration("ожидались как минимум номер и имя канала", n_line, "ch_id")
        n, name, ph, ccbm, uu, a, b, skew, cmin, cmax, primary, secondary, pors = \
            _pad(packed, ANALOG_FIELDS_FULL)

        index = _to_int(n, n_line, "An")
        if index != ichn + 1:
            raise MalformedConfiguration(f"ожидался номер канала {ichn + 1}, получено {index}", n_line, "An")
        if len(pors) == 0:
            scaling = ScalingMode.PRIMARY
        else:
            try:
                scaling = ScalingMode(pors.upper())
            except ValueError:
                raise MalformedConfiguration(f"ожидалось 'P' или 'S', получено '{pors}'", n_line, "PS") from None

        channel = AnalogChannel(
            index=index,
            name=name,
            phase=ph,
            circuit=ccbm,
            unit=uu,
            multiplier=_to_float(a, n_line, "a", DEFAULT_MULTIPLIER),
            offset=_to_float(b, n_line, "b", DEFAULT_OFFSET),
            skew=_to_float(skew, n_line, "skew", DEFAULT_SKEW),
            min_value=_to_float(cmin, n_line, "min", DEFAULT_MIN_VALUE),
            max_value=_to_float(cmax, n_line, "max", DEFAULT_MAX_VALUE),
            primary=_to_float(primary, n_line, "primary", DEFAULT_PRIMARY),
            secondary=_to_float(secondary, n_line, "secondary", DEFAULT_SECONDARY),
            scaling=scaling,
        )
        return channel, len(packed) > ANALOG_FIELDS_1991

    def _parse_status_channel(self, line: str, ichn: int) -> StatusChannel:
        """
        Формат строки: Dn,ch_id,ph,ccbm,y

        Ревизия 1991 года допускает сокращенную форму Dn,ch_id,y.
        """
        n_line = self.line_number
        packed = _read_sep_values(line)
        if len(packed) > STATUS_FIELDS_FULL:
            raise MalformedConfiguration(
                f"ожидалось не более {STATUS_FIELDS_FULL} полей, получено {len(packed)}", n_line, "Dn")
        if len(packed) < 2:
            raise MalformedConfiguration("ожидались как минимум номер и имя канала", n_line, "ch_id")
        if len(packed) == 3:
            n, name, y = packed
            ph = ccbm = ""
        else:
            n, name, ph, ccbm, y = _pad(packed, STATUS_FIELDS_FULL)

        index = _to_int(n, n_line, "Dn")
        if index != ichn + 1:
            raise MalformedConfiguration(f"ожидался номер канала {ichn + 1}, получено {index}", n_line, "Dn")
        normal_state = _to_int(y, n_line, "y", None)
        if normal_state not in (None, 0, 1):
            raise MalformedConfiguration(f"нормальное состояние должно быть 0 или 1, получено {y}", n_line, "y")
        return StatusChannel(index=index, name=name, phase=ph, circuit=ccbm, normal_state=normal_state)

    def _parse_sample_rates(self) -> Tuple[List[SampleRateSegment], bool]:
        """Читает nrates и пары samp,endsamp. Возвращает таблицу и признак timestamp_critical."""
        nrates = _to_int(self._read_line("nrates"), self.line_number, "nrates")
        if nrates < 0:
            raise MalformedConfiguration(f"отрицательное количество частот: {nrates}", self.line_number, "nrates")

        # nrates == 0: частота не фиксирована, следующая строка "0,endsamp"
        # содержит общее количество выборок, время берется из файла DAT
        timestamp_critical = nrates == 0
        sample_rates = []
        last_end = 0
        for inrate in range(max(nrates, 1)):
            line = self._read_line("samp,endsamp")
            packed = _read_sep_values(line)
            if len(packed) != 2:
                raise MalformedConfiguration(f"ожидалось 2 поля, получено {len(packed)}",
                                             self.line_number, "samp,endsamp")
            samp = _to_float(packed[0], self.line_number, "samp")
            endsamp = _to_int(packed[1], self.line_number, "endsamp")
            if samp < 0 or (not timestamp_critical and samp == 0):
                raise MalformedConfiguration(f"некорректная частота дискретизации {samp}",
                                             self.line_number, "samp")
            if endsamp <= last_end:
                raise MalformedConfiguration(
                    f"номер последней выборки {endsamp} должен возрастать (предыдущий {last_end})",
                    self.line_number, "endsamp")
            sample_rates.append(SampleRateSegment(rate=samp, end_sample=endsamp))
            last_end = endsamp
        return sample_rates, timestamp_critical

    def _infer_revision(self, has_ratio_fields: bool) -> Revision:
        """
        Определяет ревизию при отсутствии ее в первой строке.

        Осталось прочитать: start, trigger, ft и, для ревизий 1999/2013,
        timemult и строки времени 2013 года.
        """
        extra = self._remaining() - 3
        if extra >= 2:
            revision = Revision.YEAR_2013
        elif extra == 1 or has_ratio_fields:
            revision = Revision.YEAR_1999
        else:
            revision = Revision.YEAR_1991
        logger.debug("Ревизия не указана в CFG, определена как %s", revision.value)
        return revision

    def _parse_timestamp(self, line: str, revision: Revision, field: str) -> Tuple[dt.datetime, bool]:
        """
        Разбирает строку "dd/mm/yyyy,hh:mm:ss.ssssss" и возвращает временную метку
        и признак наносекундного разрешения.

        Пустые поля дают метку 01/01/0001 00:00:00 с предупреждением.
        """
        n_line = self.line_number
        day, month, year, hour, minute, second, microsecond = (0,) * 7
        nanosec = False
        if len(line.strip()) > 0:
            values = _read_sep_values(line)
            if len(values) != 2:
                raise MalformedConfiguration(f"ожидалось 2 поля (дата, время), получено {len(values)}",
                                             n_line, field)
            date_str, time_str = values
            if len(date_str) > 0:
                m = re_date.fullmatch(date_str)
                if m is None:
                    raise MalformedConfiguration(f"некорректная дата '{date_str}'", n_line, field)
                # Формат 1991 года использует формат мм/дд/гггг
                if revision == Revision.YEAR_1991:
                    month, day, year = (int(g) for g in m.groups())
                # Современные форматы используют формат дд/мм/гггг
                else:
                    day, month, year = (int(g) for g in m.groups())
            if len(time_str) > 0:
                m = re_time.fullmatch(time_str)
                if m is None:
                    raise MalformedConfiguration(f"некорректное время '{time_str}'", n_line, field)
                hour, minute, second = int(m.group(1)), int(m.group(2)), int(m.group(3))
                fracsec_str = m.group(5) or ""
                nanosec = len(fracsec_str) > 6
                # Дополнить дробную часть секунд нулями справа
                fracsec_str = fill_with_zeros_to_the_right(fracsec_str, 9 if nanosec else 6)
                microsecond = int(fracsec_str)
                if nanosec:
                    # Разрешение в наносекундах не поддерживается модулем datetime,
                    # поэтому значение усекается до микросекунд.
                    self._warn(WARNING_DATETIME_NANO)
                    microsecond = int(fracsec_str[:9]) // 1000

        using_min_data = False
        if year <= 0:
            year = dt.MINYEAR
            using_min_data = True
        if month <= 0:
            month = 1
            using_min_data = True
        if day <= 0:
            day = 1
            using_min_data = True
        try:
            # Информация о часовом поясе хранится отдельно (time_code)
            timestamp = dt.datetime(year, month, day, hour, minute, second, microsecond)
        except ValueError as exc:
            raise MalformedConfiguration(f"недопустимая дата или время: {exc}", n_line, field) from None
        if using_min_data:
            self._warn(WARNING_MINDATE.format(str(timestamp)))
        return timestamp, nanosec

    def _parse_time_quality(self, line: str) -> Tuple[Optional[TimeQuality], Optional[LeapSecondStatus]]:
        n_line = self.line_number
        tmq_code, leapsec = _pad(_read_sep_values(line), 2)
        time_quality = None
        if len(tmq_code) > 0:
            code = tmq_code.upper()
            if len(code) != 1 or code not in TMQ_CODES:
                raise MalformedConfiguration(f"некорректный код качества времени '{tmq_code}'", n_line, "tmq_code")
            time_quality = TimeQuality(code)
        leap_second = None
        value = _to_int(leapsec, n_line, "leapsec", None)
        if value is not None:
            try:
                leap_second = LeapSecondStatus(value)
            except ValueError:
                raise MalformedConfiguration(f"некорректный признак високосной секунды '{leapsec}'",
                                             n_line, "leapsec") from None
        return time_quality, leap_second


def decode_text(content: Union[str, bytes], encoding: str) -> str:
    """Декодирует байты файла CFG в выбранной кодировке."""
    if isinstance(content, str):
        return content
    try:
        return bytes(content).decode(encoding)
    except UnicodeDecodeError as exc:
        # номер строки с ошибочным байтом
        line = bytes(content[:exc.start]).count(b"\n") + 1
        raise MalformedConfiguration(f"содержимое не соответствует кодировке {encoding}: {exc.reason}",
                                     line) from None


def parse_cfg(content: Union[str, bytes], encoding: Optional[str] = None,
              config: Optional[ReaderConfig] = None) -> Configuration:
    """
    Разбирает содержимое файла CFG.

    Args:
        content (str | bytes): содержимое файла CFG.
        encoding (str, optional): кодировка байтов ("ascii" или "utf-8");
            по умолчанию берется из config.
        config (ReaderConfig, optional): параметры чтения.

    Returns:
        Configuration: неизменяемая конфигурация записи.
    """
    config = config or ReaderConfig()
    text = decode_text(content, encoding or config.encoding)
    return CfgParser(text, config).parse()
