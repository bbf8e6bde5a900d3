"""Constants for the BioWare Aurora resource formats used by KotOR I and II."""

from enum import IntEnum

# All on-disk counts and offsets are little-endian u32
DWORD_SIZE = 4

# Every file starts with a 4-byte type tag and a 4-byte version tag
FILE_HEAD_SIZE = 8

TEXT_ENCODING = "utf-8"

# TLK string refs use this value for "no string"
NO_STRING_REF = 0xFFFFFFFF

# GFF: 12 dwords after the file head
GFF_HEADER_SIZE = FILE_HEAD_SIZE + 12 * DWORD_SIZE
GFF_LABEL_SIZE = 16
RESREF_MAX_LEN = 0xFF

# ERF: 9 dwords after the file head, then reserved padding
ERF_HEADER_SIZE = FILE_HEAD_SIZE + 9 * DWORD_SIZE
ERF_HEADER_PADDING = 116
ERF_KEY_NAME_SIZE = 16
ERF_KEY_SIZE = ERF_KEY_NAME_SIZE + 4 + 2 + 2   # name(16) + id(4) + type(2) + unused(2)
ERF_RESOURCE_SIZE = 2 * DWORD_SIZE             # offset(4) + size(4)

# KEY / BIF
KEY_TYPE = "KEY "
KEY_VERSION = "V1  "
KEY_FILE_ENTRY_SIZE = 2 * DWORD_SIZE + 2 * 2   # size(4) + name_offset(4) + name_size(2) + drive(2)
KEY_ENTRY_SIZE = 16 + 2 + DWORD_SIZE           # name(16) + type(2) + id(4)
KEY_RESREF_SIZE = 16
KEY_FILE_IDX_SHIFT = 20

BIF_TYPE = "BIFF"
BIF_VERSION = "V1  "
BIF_RESOURCE_ENTRY_SIZE = 4 * DWORD_SIZE       # id(4) + offset(4) + size(4) + type(4)

# TLK
TLK_TYPE = "TLK "
TLK_VERSION = "V3.0"
TLK_HEADER_SIZE = FILE_HEAD_SIZE + 3 * DWORD_SIZE
TLK_ENTRY_SIZE = 10 * DWORD_SIZE
TLK_FLAG_TEXT_PRESENT = 0x1

# 2DA
TWODA_TYPE = "2DA "
TWODA_VERSION = "V2.b"
TWODA_INDEX_COLUMN = "_idx"


class FieldType(IntEnum):
    """GFF field type tags as stored in the field table."""
    BYTE = 0
    CHAR = 1
    WORD = 2
    SHORT = 3
    DWORD = 4
    INT = 5
    DWORD64 = 6
    INT64 = 7
    FLOAT = 8
    DOUBLE = 9
    STRING = 10
    RESREF = 11
    LOCSTRING = 12
    VOID = 13
    STRUCT = 14
    LIST = 15
    ORIENTATION = 16
    VECTOR = 17


class Game(IntEnum):
    """The two games sharing these formats."""
    ONE = 0
    TWO = 1

    @property
    def steam_dir(self) -> str:
        if self == Game.ONE:
            return "swkotor"
        return "Knights of the Old Republic II"
