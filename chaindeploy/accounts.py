from typing import List

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_keys.exceptions import ValidationError as KeyValidationError
from eth_utils import ValidationError

from chaindeploy.constants import NAMED_ACCOUNTS
from chaindeploy.exceptions import ConfigurationError
from chaindeploy.networks import AccountStrategy, ExplicitPrivateKey, MnemonicDerivation

Account.enable_unaudited_hdwallet_features()

INVALID_KEY_ERRORS = (ValueError, ValidationError, KeyValidationError)


def derive_accounts(strategy: AccountStrategy) -> List[LocalAccount]:
    """Returns the signers available for a run, in named-account index order."""
    if isinstance(strategy, ExplicitPrivateKey):
        try:
            return [Account.from_key(strategy.private_key)]
        except INVALID_KEY_ERRORS as e:
            # the key itself is never echoed
            raise ConfigurationError(f"Invalid private key: {type(e).__name__}") from e

    if isinstance(strategy, MnemonicDerivation):
        accounts = list()
        for index in range(strategy.count):
            path = f"{strategy.path}/{index}"
            try:
                account = Account.from_mnemonic(strategy.mnemonic, account_path=path)
            except INVALID_KEY_ERRORS as e:
                raise ConfigurationError(
                    f"Cannot derive account #{index} from the configured mnemonic: "
                    f"{type(e).__name__}"
                ) from e
            accounts.append(account)
        return accounts

    raise ConfigurationError(f"Unsupported account strategy {strategy!r}")


def get_named_account(accounts: List[LocalAccount], name: str) -> LocalAccount:
    try:
        index = NAMED_ACCOUNTS[name]
    except KeyError:
        raise ConfigurationError(f"Unknown named account '{name}'.")
    if index >= len(accounts):
        raise ConfigurationError(
            f"Named account '{name}' needs account #{index} but only "
            f"{len(accounts)} account(s) are configured."
        )
    return accounts[index]
