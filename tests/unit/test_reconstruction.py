import datetime as dt

import numpy as np
import pytest

from comtrade_tools.config import ReaderConfig
from comtrade_tools.core.errors import TruncatedOrMisalignedData
from comtrade_tools.core.models import AnalogChannel, Record
from comtrade_tools.io.cfg_parser import parse_cfg
from comtrade_tools.io.dat_reader import decode_records
from comtrade_tools.processing.reconstruction import SampleRateTable, reconstruct, scale_analog

QUIET = ReaderConfig(ignore_warnings=True)


def _records(count, analog=(0,), timestamp=None):
    return [Record(sample_number=n, timestamp=timestamp, analog=analog, status=())
            for n in range(1, count + 1)]


class TestScenario:

    def test_two_channels_binary16(self, scenario_cfg, scenario_dat):
        cfg = parse_cfg(scenario_cfg)
        samples = list(reconstruct(cfg, decode_records(cfg, scenario_dat)))
        assert [s.analog for s in samples] == [(10, 45), (30, 85)]
        assert samples[0].time == pytest.approx(0.0)
        assert samples[1].time == pytest.approx(0.001)
        assert samples[1].timestamp == cfg.start_timestamp + dt.timedelta(milliseconds=1)

    def test_physical_values_for_every_record(self, build_cfg, build_binary):
        channels = ((0.5, 1.0), (-2.0, 3.0), (1.0, -100.0))
        cfg = parse_cfg(build_cfg(analog=channels, rates=((4000, 50),)))
        raw = [(n, -n * 3, n * 100) for n in range(1, 51)]
        payload = build_binary([(n, 0, values, ()) for n, values in zip(range(1, 51), raw)])
        for sample, values in zip(reconstruct(cfg, decode_records(cfg, payload)), raw):
            assert sample.analog == tuple(x * a + b for x, (a, b) in zip(values, channels))


class TestRateTable:

    def test_constant_rate_is_arithmetic(self, build_cfg):
        cfg = parse_cfg(build_cfg(rates=((1200, 100),)))
        times = np.array([s.time for s in reconstruct(cfg, _records(100))])
        np.testing.assert_allclose(np.diff(times), 1 / 1200)
        assert times[0] == 0.0

    def test_multi_segment_continuous(self, build_cfg):
        cfg = parse_cfg(build_cfg(rates=((1000, 10), (250, 20), (2000, 30))))
        times = [s.time for s in reconstruct(cfg, _records(30))]
        assert all(later >= earlier for earlier, later in zip(times, times[1:]))
        # выборка 11 - первая на участке 250 Гц
        assert times[10] == pytest.approx(10 / 1000)
        assert times[11] - times[10] == pytest.approx(1 / 250)
        assert times[20] == pytest.approx(10 / 1000 + 10 / 250)
        assert times[29] == pytest.approx(10 / 1000 + 10 / 250 + 9 / 2000)

    def test_locate_forward_scan(self, cfg_1999_text):
        table = SampleRateTable(parse_cfg(cfg_1999_text))
        assert table.locate(2, 0).rate == 1000
        assert table.locate(3, 0).rate == 500
        assert table.last_sample == 4

    def test_sample_number_past_table(self, build_cfg):
        cfg = parse_cfg(build_cfg(rates=((1000, 2),)))
        records = _records(3)
        samples = reconstruct(cfg, records)
        next(samples)
        next(samples)
        with pytest.raises(TruncatedOrMisalignedData) as exc_info:
            next(samples)
        assert exc_info.value.record_index == 2


class TestTimestamps:

    def test_timestamp_critical(self, cfg_2013_text):
        cfg = parse_cfg(cfg_2013_text, config=QUIET)
        records = [Record(n, ts, (1.0,), (0, 1)) for n, ts in ((1, 0), (2, 500), (3, 1500))]
        samples = list(reconstruct(cfg, records))
        # метка * 1e-9 * timemult (2)
        assert [s.time for s in samples] == pytest.approx([0.0, 1e-6, 3e-6])
        assert samples[2].analog == pytest.approx((0.1,))
        assert samples[2].status == (0, 1)

    def test_timestamp_critical_without_rate(self, cfg_2013_text):
        cfg = parse_cfg(cfg_2013_text, config=QUIET)
        records = [Record(1, 0, (1.0,), (0, 0)), Record(2, None, (1.0,), (0, 0))]
        samples = reconstruct(cfg, records)
        next(samples)
        with pytest.raises(TruncatedOrMisalignedData) as exc_info:
            next(samples)
        assert exc_info.value.record_index == 1

    def test_rate_table_ignores_dat_timestamps(self, build_cfg):
        cfg = parse_cfg(build_cfg(rates=((1000, 2),)))
        samples = list(reconstruct(cfg, _records(2, timestamp=777)))
        assert samples[1].time == pytest.approx(0.001)

    def test_prefer_dat_timestamps(self, build_cfg):
        cfg = parse_cfg(build_cfg(rates=((1000, 3),), timemult=10))
        records = [Record(1, 0, (0,), ()), Record(2, 50, (0,), ()), Record(3, None, (0,), ())]
        samples = list(reconstruct(cfg, records, ReaderConfig(prefer_dat_timestamps=True)))
        assert samples[1].time == pytest.approx(50 * 1e-6 * 10)
        # без метки - по таблице частот
        assert samples[2].time == pytest.approx(0.002)

    def test_analog_count_mismatch(self, build_cfg):
        cfg = parse_cfg(build_cfg(analog=((1, 0), (1, 0))))
        with pytest.raises(TruncatedOrMisalignedData):
            list(reconstruct(cfg, _records(1, analog=(1,))))


def test_scale_analog():
    channel = AnalogChannel(index=1, name="IA", multiplier=2.0, offset=5.0)
    result = scale_analog([10, 40, -1], channel)
    assert result.dtype == np.float64
    np.testing.assert_allclose(result, [25.0, 85.0, 3.0])
