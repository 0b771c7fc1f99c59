"""
Глобальные pytest fixtures и конфигурация для всех тестов.

Этот файл автоматически загружается pytest и делает доступными
fixtures для всех тестов в проекте. Все данные COMTRADE строятся
в памяти, файлов на диске тесты не требуют.
"""

import math
import os
import struct
import sys

import pytest

# Добавляем корневую директорию в путь для импортов
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


CFG_1991 = """\
Substation 1,Recorder 7
3,2A,1D
1,VA,A,Line 1,kV,0.5,1.0,0,-32767,32767
2,IA,A,Line 1,A,2.0,0.0,0,-32767,32767
1,Trip,0
50
1
1000,3
12/24/1995,10:00:00.000000
12/24/1995,10:00:00.001000
ASCII
"""

CFG_1999 = """\
Substation 2,Recorder 8,1999
2,1A,1D
1,UA,A,Bus,V,1.5,-2.0,0,-32767,32767,110,0.1,S
1,Breaker,A,Bus,1
60
2
1000,2
500,4
24/12/2005,10:00:00.000000
24/12/2005,10:00:00.002000
BINARY
1.0
"""

CFG_2013 = """\
Substation 3,Recorder 9,2013
3,1A,2D
1,IB,B,Feeder,A,0.1,0.0,0,-32767,32767,600,5,P
1,Prot Start,,,0
2,Prot Trip,,,0
50
0
0,3
24/12/2015,10:00:00.000000000
24/12/2015,10:00:00.000100000
FLOAT32
2
+3,-4h30
B,1
"""


@pytest.fixture
def cfg_1991_text():
    """Fixture: минимальный CFG ревизии 1991 года (без поля ревизии), формат ASCII."""
    return CFG_1991


@pytest.fixture
def cfg_1999_text():
    """Fixture: CFG ревизии 1999 года с двумя участками частоты, формат BINARY."""
    return CFG_1999


@pytest.fixture
def cfg_2013_text():
    """
    Fixture: CFG ревизии 2013 года, формат FLOAT32.

    nrates = 0 (время берется из меток DAT), наносекундные метки,
    time_code/local_code и tmq_code/leapsec.
    """
    return CFG_2013


def _build_cfg(analog=((1.0, 0.0),), status=0, encoding="BINARY", rates=((1000, 2),),
               revision="1999", start="01/01/2024,00:00:00.000000", timemult=None):
    lines = [f"Station,Device,{revision}" if revision else "Station,Device",
             f"{len(analog) + status},{len(analog)}A,{status}D"]
    for i, (a, b) in enumerate(analog):
        lines.append(f"{i + 1},A{i + 1},,,V,{a},{b},0,-32767,32767,1,1,P")
    for i in range(status):
        lines.append(f"{i + 1},D{i + 1},,,0")
    lines.append("50")
    lines.append(str(len(rates)))
    for rate, end in rates:
        lines.append(f"{rate},{end}")
    lines.append(start)
    lines.append(start)
    lines.append(encoding)
    if timemult is not None:
        lines.append(str(timemult))
    return "\n".join(lines) + "\n"


@pytest.fixture
def build_cfg():
    """
    Fixture: построитель текста CFG.

    analog - пары (a, b) аналоговых каналов, status - количество дискретных,
    rates - пары (samp, endsamp).
    """
    return _build_cfg


def _build_binary(records, encoding="BINARY", status_word_bits=None):
    analog_format = {"BINARY": "h", "BINARY32": "i", "FLOAT32": "f"}[encoding]
    if status_word_bits is None:
        status_word_bits = 16 if encoding == "BINARY" else 32
    word_format = "H" if status_word_bits == 16 else "I"

    payload = bytearray()
    for sample_number, timestamp, analog, status in records:
        words = [0] * math.ceil(len(status) / status_word_bits)
        for ichannel, bit in enumerate(status):
            words[ichannel // status_word_bits] |= bit << (ichannel % status_word_bits)
        row_format = f"<II{len(analog)}{analog_format}{len(words)}{word_format}"
        payload += struct.pack(row_format, sample_number, timestamp, *analog, *words)
    return bytes(payload)


@pytest.fixture
def build_binary():
    """
    Fixture: построитель двоичного DAT.

    records - кортежи (номер, метка, аналоговые значения, биты дискретных каналов).
    """
    return _build_binary


@pytest.fixture
def scenario_cfg(build_cfg):
    """Fixture: 2 аналоговых канала (a=1,b=0 и a=2,b=5), BINARY, 1000 Гц."""
    return build_cfg(analog=((1, 0), (2, 5)), rates=((1000, 2),))


@pytest.fixture
def scenario_dat(build_binary):
    """Fixture: две записи с сырыми значениями (10,20) и (30,40)."""
    return build_binary([(1, 0, (10, 20), ()), (2, 1000, (30, 40), ())])


def pytest_configure(config):
    """Конфигурация pytest. Добавляем пользовательские маркеры."""
    config.addinivalue_line(
        "markers",
        "unit: быстрые unit-тесты без файловых операций"
    )
    config.addinivalue_line(
        "markers",
        "integration: интеграционные тесты полного чтения записи"
    )
