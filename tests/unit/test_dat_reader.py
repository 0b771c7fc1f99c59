import math
import struct

import pytest

from comtrade_tools.config import ReaderConfig
from comtrade_tools.core.constants import DataEncoding
from comtrade_tools.core.errors import TruncatedOrMisalignedData
from comtrade_tools.io.cfg_parser import parse_cfg
from comtrade_tools.io.dat_reader import RecordLayout, decode_records


class TestRecordLayout:
    """Размер и формат записи для каждого двоичного формата."""

    @pytest.mark.parametrize("encoding, analog, status, expected_size", [
        ("BINARY", 2, 0, 12),
        ("BINARY", 2, 1, 14),
        ("BINARY", 1, 17, 8 + 2 + 4),
        ("BINARY32", 2, 1, 8 + 8 + 4),
        ("FLOAT32", 3, 33, 8 + 12 + 8),
    ])
    def test_record_size(self, build_cfg, encoding, analog, status, expected_size):
        cfg = parse_cfg(build_cfg(analog=((1, 0),) * analog, status=status, encoding=encoding))
        layout = RecordLayout.for_configuration(cfg)
        assert layout.record_size == expected_size
        assert struct.calcsize(layout.struct_format) == expected_size

    def test_status_word_override(self, build_cfg):
        cfg = parse_cfg(build_cfg(status=3, encoding="FLOAT32"))
        assert RecordLayout.for_configuration(cfg).word_bits == 32
        layout = RecordLayout.for_configuration(cfg, status_word_bits=16)
        assert layout.word_bits == 16
        assert layout.record_size == 8 + 4 + 2

    def test_unpack_status_bits(self, build_cfg):
        cfg = parse_cfg(build_cfg(status=18, encoding="BINARY"))
        layout = RecordLayout.for_configuration(cfg)
        # канал 1 - бит 0 первого слова, канал 17 - бит 0 второго слова
        bits = layout.unpack_status((0b1000000000000101, 0b10))
        assert bits[0] == 1 and bits[1] == 0 and bits[2] == 1
        assert bits[15] == 1
        assert bits[16] == 0 and bits[17] == 1


class TestBinaryDecoding:

    def test_binary16(self, scenario_cfg, scenario_dat):
        cfg = parse_cfg(scenario_cfg)
        records = list(decode_records(cfg, scenario_dat))
        assert [r.sample_number for r in records] == [1, 2]
        assert [r.timestamp for r in records] == [0, 1000]
        assert [r.analog for r in records] == [(10, 20), (30, 40)]
        assert records[0].status == ()

    def test_binary16_negative_values_and_status(self, build_cfg, build_binary):
        cfg = parse_cfg(build_cfg(analog=((1, 0),), status=2))
        payload = build_binary([(1, 0, (-32767,), (1, 0)), (2, 1000, (-1,), (0, 1))])
        records = list(decode_records(cfg, payload))
        assert records[0].analog == (-32767,)
        assert records[0].status == (1, 0)
        assert records[1].status == (0, 1)

    def test_binary32(self, build_cfg, build_binary):
        cfg = parse_cfg(build_cfg(analog=((1, 0), (1, 0)), status=1, encoding="BINARY32"))
        payload = build_binary([(1, 0, (100000, -100000), (1,)), (2, 1000, (7, 8), (0,))],
                               encoding="BINARY32")
        records = list(decode_records(cfg, payload))
        assert records[0].analog == (100000, -100000)
        assert records[0].status == (1,)

    def test_float32(self, build_cfg, build_binary):
        cfg = parse_cfg(build_cfg(analog=((1, 0),), status=1, encoding="FLOAT32"))
        payload = build_binary([(1, 0, (1.5,), (1,)), (2, 1000, (-0.25,), (0,))], encoding="FLOAT32")
        records = list(decode_records(cfg, payload))
        assert records[0].analog == (1.5,)
        assert records[1].analog == (-0.25,)

    def test_missing_timestamp(self, build_cfg, build_binary):
        cfg = parse_cfg(build_cfg())
        payload = build_binary([(1, 0xFFFFFFFF, (5,), ()), (2, 1000, (6,), ())])
        records = list(decode_records(cfg, payload))
        assert records[0].timestamp is None
        assert records[1].timestamp == 1000

    def test_one_byte_short(self, scenario_cfg, scenario_dat):
        cfg = parse_cfg(scenario_cfg)
        with pytest.raises(TruncatedOrMisalignedData) as exc_info:
            decode_records(cfg, scenario_dat[:-1])
        assert exc_info.value.record_index == 1

    def test_fewer_records_than_declared(self, scenario_cfg, scenario_dat, caplog):
        cfg = parse_cfg(scenario_cfg)
        records = list(decode_records(cfg, scenario_dat[:12]))
        assert len(records) == 1
        assert "объявленных" in caplog.text

    def test_trailing_bytes_lenient(self, scenario_cfg, scenario_dat, caplog):
        cfg = parse_cfg(scenario_cfg)
        records = list(decode_records(cfg, scenario_dat + b"\x00\x00\x00"))
        assert len(records) == 2
        assert "игнорируются" in caplog.text

    def test_extra_record_lenient(self, scenario_cfg, scenario_dat):
        cfg = parse_cfg(scenario_cfg)
        records = list(decode_records(cfg, scenario_dat + scenario_dat[:12]))
        assert len(records) == 2

    def test_trailing_bytes_strict(self, scenario_cfg, scenario_dat):
        cfg = parse_cfg(scenario_cfg)
        with pytest.raises(TruncatedOrMisalignedData) as exc_info:
            decode_records(cfg, scenario_dat + b"\x00", ReaderConfig(strict_trailing_data=True))
        assert exc_info.value.record_index == 2

    def test_memoryview_payload(self, scenario_cfg, scenario_dat):
        cfg = parse_cfg(scenario_cfg)
        assert len(list(decode_records(cfg, memoryview(scenario_dat)))) == 2

    def test_text_payload_rejected(self, scenario_cfg):
        cfg = parse_cfg(scenario_cfg)
        with pytest.raises(TypeError):
            decode_records(cfg, "1,0,10,20")

    def test_lazy_prefix(self, scenario_cfg, scenario_dat):
        cfg = parse_cfg(scenario_cfg)
        records = decode_records(cfg, scenario_dat)
        assert next(records).sample_number == 1


class TestAsciiDecoding:

    def test_ascii(self, cfg_1991_text):
        cfg = parse_cfg(cfg_1991_text)
        assert cfg.encoding is DataEncoding.ASCII
        text = "1,0,10,-20,0\n2,1000,11.5,-21,1\r\n\n3,2000,12,-22,0\n"
        records = list(decode_records(cfg, text))
        assert len(records) == 3
        assert records[1].analog == (11.5, -21)
        assert records[1].status == (1,)
        assert records[2].timestamp == 2000

    def test_ascii_bytes(self, cfg_1991_text):
        cfg = parse_cfg(cfg_1991_text)
        records = list(decode_records(cfg, b"1,0,1,2,0\n2,1000,3,4,1\n3,2000,5,6,0\n"))
        assert records[2].analog == (5, 6)

    def test_blank_fields(self, cfg_1991_text):
        cfg = parse_cfg(cfg_1991_text)
        records = list(decode_records(cfg, "1,,,2,0\n2,,3,4,1\n3,,5,6,0\n"))
        assert records[0].timestamp is None
        assert math.isnan(records[0].analog[0])

    def test_wrong_field_count(self, cfg_1991_text):
        cfg = parse_cfg(cfg_1991_text)
        records = decode_records(cfg, "1,0,1,2,0\n2,1000,3,4\n3,2000,5,6,0\n")
        assert next(records).sample_number == 1
        with pytest.raises(TruncatedOrMisalignedData) as exc_info:
            next(records)
        assert exc_info.value.record_index == 1

    def test_sample_number_below_one(self, cfg_1991_text):
        cfg = parse_cfg(cfg_1991_text)
        records = decode_records(cfg, "1,0,1,2,0\n-1,1000,3,4,1\n0,2000,5,6,0\n")
        assert next(records).sample_number == 1
        with pytest.raises(TruncatedOrMisalignedData) as exc_info:
            next(records)
        assert exc_info.value.record_index == 1

    def test_bad_status_token(self, cfg_1991_text):
        cfg = parse_cfg(cfg_1991_text)
        with pytest.raises(TruncatedOrMisalignedData):
            list(decode_records(cfg, "1,0,1,2,2\n"))

    def test_bad_number(self, cfg_1991_text):
        cfg = parse_cfg(cfg_1991_text)
        with pytest.raises(TruncatedOrMisalignedData):
            list(decode_records(cfg, "1,0,1;5,2,0\n"))

    def test_extra_lines(self, cfg_1991_text):
        cfg = parse_cfg(cfg_1991_text)
        text = "1,0,1,2,0\n2,1000,3,4,1\n3,2000,5,6,0\n4,3000,7,8,0\n"
        assert len(list(decode_records(cfg, text))) == 3
        with pytest.raises(TruncatedOrMisalignedData) as exc_info:
            list(decode_records(cfg, text, ReaderConfig(strict_trailing_data=True)))
        assert exc_info.value.record_index == 3

    def test_invalid_encoding(self, cfg_1991_text):
        cfg = parse_cfg(cfg_1991_text)
        with pytest.raises(TruncatedOrMisalignedData) as exc_info:
            decode_records(cfg, b"1,0,1,2,0\n2,1000,\xff,4,1\n")
        assert exc_info.value.record_index == 1
