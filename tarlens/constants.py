# Block geometry
BLOCK_SIZE = 512

# ustar header layout: field -> (offset, width)
FIELD_NAME = (0, 100)
FIELD_MODE = (100, 8)
FIELD_UID = (108, 8)
FIELD_GID = (116, 8)
FIELD_SIZE = (124, 12)
FIELD_MTIME = (136, 12)
FIELD_CHKSUM = (148, 8)
FIELD_TYPEFLAG = (156, 1)
FIELD_LINKNAME = (157, 100)
FIELD_MAGIC = (257, 6)
FIELD_VERSION = (263, 2)
FIELD_UNAME = (265, 32)
FIELD_GNAME = (297, 32)
FIELD_DEVMAJOR = (329, 8)
FIELD_DEVMINOR = (337, 8)
FIELD_PREFIX = (345, 155)

USTAR_MAGIC = b"ustar"

# Checksum sums are bounded by 256 * 512 = 2**17
CHKSUM_MASK = (1 << 17) - 1

# Typeflags
REGTYPE = "0"
AREGTYPE = "\x00"
LNKTYPE = "1"
SYMTYPE = "2"
CHRTYPE = "3"
BLKTYPE = "4"
DIRTYPE = "5"
FIFOTYPE = "6"
CONTTYPE = "7"
XGLTYPE = "g"  # PAX global header
XHDTYPE = "x"  # PAX extended header
GNUTYPE_LONGNAME = "L"
GNUTYPE_LONGLINK = "K"

# Safety bound for the payload of a single metadata entry (L/K/x/g)
MAX_META_SIZE = 1024 * 1024  # 1 MiB

# Render format tag; bump whenever render.py output changes so cached
# renderings are not reused.
RENDER_FORMAT_VERSION = "tarlens-render-1"

# Environment
ENV_CACHE_DIR = "TARLENS_CACHE_DIR"

# Bytes pulled per read() when streaming entry content
DEFAULT_READ_SIZE = 65536
