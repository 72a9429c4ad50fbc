from pathlib import Path

import pumpfun_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(pumpfun_deployment.__file__).parent
PARAMS_DIR = DEPLOYMENT_DIR / "params"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"

RECORD_FILENAME_TEMPLATE = "deployment-{network}.json"

#
# Networks
#

LOCAL = "local"
BSC_TESTNET = "bsctestnet"

SUPPORTED_NETWORKS = [LOCAL, BSC_TESTNET]

DEFAULT_NETWORK = BSC_TESTNET

BSC_TESTNET_RPC_URL = "https://data-seed-prebsc-1-s1.binance.org:8545"
BSC_TESTNET_CHAIN_ID = 97
BSC_TESTNET_GAS_LIMIT = 2_100_000
BSC_TESTNET_GAS_PRICE = 20_000_000_000  # 20 gwei

LOCAL_CHAIN_ID = 1337

#
# Contracts
#

FACTORY_CONTRACT = "PumpFunFactory"
MAIN_CONTRACT = "PumpFun"

# fully qualified "<source path>:<contract name>" identifiers used for verification
FACTORY_CONTRACT_ID = f"contracts/src/{FACTORY_CONTRACT}.sol:{FACTORY_CONTRACT}"
MAIN_CONTRACT_ID = f"contracts/src/{MAIN_CONTRACT}.sol:{MAIN_CONTRACT}"

#
# Environment
#

NETWORK_ENVVAR = "DEPLOY_NETWORK"
CONFIG_FILE_ENVVAR = "DEPLOY_CONFIG"
RPC_URL_ENVVAR = "BSC_TESTNET_URL"
GAS_LIMIT_ENVVAR = "DEPLOY_GAS_LIMIT"
GAS_PRICE_ENVVAR = "DEPLOY_GAS_PRICE"
SIGNING_CREDENTIAL_ENVVAR = "DEPLOYER_ACCOUNT"
SIGNING_PASSPHRASE_ENVVAR = "DEPLOYER_PASSPHRASE"
VERIFICATION_CREDENTIAL_ENVVAR = "BSCSCAN_API_KEY"
ARTIFACTS_DIR_ENVVAR = "DEPLOY_ARTIFACTS_DIR"
