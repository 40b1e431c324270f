"""Constants shared across libknyt."""

DEFAULT_REPO_DIR = '.knyt'
DEFAULT_BRANCH = 'main'
IGNORE_FILE = '.knytignore'

OBJECTS_SUBDIR = 'objects'
REFS_DIR = 'refs'
HEADS_DIR = 'heads'
TAGS_DIR = 'tags'
HEAD_FILE = 'HEAD'
INDEX_FILE = 'index'
MERGE_HEAD_FILE = 'MERGE_HEAD'

SYMREF_PREFIX = 'ref: '
TAG_PREFIX = 'v'

HASH_LENGTH = 40
HASH_RAW_LENGTH = 20
HASH_CHARSET = '0123456789abcdef'

FILE_MODE = '100644'
TREE_MODE = '40000'

DEFAULT_AUTHOR = 'knyt <you@example.com>'
DEFAULT_TZ_OFFSET = '+0000'

# Deepest directory nesting the tree builder will walk
MAX_TREE_DEPTH = 256

CONFLICT_START = '<<<<<<<'
CONFLICT_SEPARATOR = '======='
CONFLICT_END = '>>>>>>>'
CONFLICT_MARKERS = (CONFLICT_START, CONFLICT_SEPARATOR, CONFLICT_END)
CURRENT_LABEL = 'CURRENT'
MERGING_LABEL = 'MERGING'

MERGE_RESOLVED_MESSAGE = 'Merge resolved'

# Unstages every path at once
UNSTAGE_ALL = '.'
