from collections import OrderedDict

from ape.utils import ZERO_ADDRESS


def _confirm_deployment(contract_name: str) -> None:
    """Asks the user to confirm the deployment of a single proxy."""
    answer = input(f"Deploy {contract_name} proxy Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        exit(-1)


def _continue() -> None:
    """Asks the user to continue."""
    answer = input("Continue Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        exit(-1)


def _confirm_zero_address() -> None:
    answer = input("Zero Address detected for initializer parameter; Continue? Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        exit(-1)


def _confirm_resolution(
    resolved_params: OrderedDict, contract_name: str, initializer: str, salt=None
) -> None:
    """Asks the user to confirm the resolved initializer parameters for a single proxy."""
    if salt is not None:
        print(f"\n(i) {contract_name} proxy salt: 0x{salt.hex()}")

    if len(resolved_params) == 0:
        print(f"\n(i) No {initializer} parameters for {contract_name}")
        _confirm_deployment(contract_name)
        return

    print(f"\n{initializer.capitalize()} parameters for {contract_name}")
    contains_zero_address = False
    for name, resolved_value in resolved_params.items():
        print(f"\t{name}={resolved_value}")
        if not contains_zero_address:
            contains_zero_address = resolved_value == ZERO_ADDRESS
    _confirm_deployment(contract_name)
    if contains_zero_address:
        _confirm_zero_address()
