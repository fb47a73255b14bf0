"""Escrow engine configuration constants.

Keep the wire constants aligned with the compiled escrow validator
(`validators/escrow.ak`). Changing any of them changes datum, redeemer or
output-tag bytes.
"""

# Credential / hash sizes
KEY_HASH_SIZE = 28  # BLAKE2b-224 payment key hash
KEY_HASH_SIZES = (KEY_HASH_SIZE, 32)  # some toolchains carry 32-byte credentials
SCRIPT_HASH_SIZE = 28
TX_ID_SIZE = 32  # BLAKE2b-256 transaction body hash
TAG_SIZE = 32

# Plutus data limits
MAX_BYTES_CHUNK = 64  # longer byte strings require chunked encoding
MAX_UINT64 = 2**64 - 1
MIN_CBOR_NINT = -(2**64)  # CBOR major type 1 floor
MAX_CONSTR_COMPACT = 6  # tags 121..127
MAX_CONSTR_EXTENDED = 127  # tags 1280..1400
CONSTR_TAG_BASE = 121
CONSTR_TAG_EXTENDED_BASE = 1280
CONSTR_TAG_GENERAL = 102

# Optional encoding (Aiken `Option`)
OPTION_SOME = 0
OPTION_NONE = 1

# Output reference encoding
MAX_OUTPUT_INDEX = 0xFFFF

# Redeemer alternative indices, fixed by the compiled validator
REDEEMER_RELEASE = 0
REDEEMER_REFUND = 1
REDEEMER_CANCEL = 2

# Fees
MAX_BPS = 10_000

# Units
LOVELACE_PER_ADA = 1_000_000

# Validity windows (POSIX milliseconds)
CANCEL_VALIDITY_MARGIN_MS = 100
DEFAULT_VALIDITY_TTL_MS = 10 * 60 * 1000
TIMELOCK_BUFFER_MS = 2 * 60 * 1000
CANCEL_BUFFER_MS = 5 * 60 * 1000

# Indexer polling (ledger collaborator)
INDEXER_WAIT_SECONDS = 45.0
INDEXER_MAX_ATTEMPTS = 6
REQUEST_TIMEOUT_SECONDS = 30.0

# Networks
NETWORK_MAINNET = "Mainnet"
NETWORK_PREPROD = "Preprod"
NETWORK_PREVIEW = "Preview"
NETWORK_IDS = {
    NETWORK_MAINNET: 1,
    NETWORK_PREPROD: 0,
    NETWORK_PREVIEW: 0,
}
ADDRESS_HRP_MAINNET = "addr"
ADDRESS_HRP_TESTNET = "addr_test"
SCRIPT_ENTERPRISE_HEADER = 0x70
KEY_ENTERPRISE_HEADER = 0x60

# Plutus language prefixes for script hashing
PLUTUS_SCRIPT_PREFIX = {
    1: 0x01,
    2: 0x02,
    3: 0x03,
}

DEFAULT_BLOCKFROST_URL = "https://cardano-preview.blockfrost.io/api/v0"

# Ledger rejection fragments that mean the funding input is already consumed
CONSUMED_INPUT_MARKERS = (
    "BadInputsUTxO",
    "already been spent",
    "input already consumed",
    "ConflictingInputsUTxO",
)
