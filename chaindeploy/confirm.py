"""Interactive Y/N prompts shown before sending transactions to a live network."""

import sys
from typing import Any, Mapping

ZERO_ADDRESS = "0x" + "0" * 40


def confirm(prompt: str) -> None:
    """Exits the process unless the operator answers anything but 'n'."""
    answer = input(prompt)
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        sys.exit(-1)


def is_zero_address(value: Any) -> bool:
    return isinstance(value, str) and value.lower() == ZERO_ADDRESS


def confirm_resolution(
    resolved_params: Mapping[str, Any], contract_name: str, network: str
) -> None:
    """Shows the resolved constructor parameters of a contract and asks to deploy it."""
    if resolved_params:
        print(f"\nConstructor parameters for {contract_name}")
        for name, value in resolved_params.items():
            print(f"\t{name}={value}")
    else:
        print(f"\n(i) No constructor parameters for {contract_name}")

    confirm(f"Deploy {contract_name} to {network} Y/N? ")
    if any(is_zero_address(value) for value in resolved_params.values()):
        confirm("Zero Address detected for deployment parameter; Continue? Y/N? ")
