import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Iterable, List, NamedTuple, Optional, Sequence

from eth_account.signers.local import LocalAccount

from chaindeploy.accounts import get_named_account
from chaindeploy.constants import ALL_TAG, NAMED_ACCOUNTS
from chaindeploy.exceptions import InvalidTaskError, UnresolvedVariableError
from chaindeploy.registry import DeploymentStore
from chaindeploy.utils import _load_yaml

CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"
CONTRACT_TAGS_KEY = "tags"
CONTRACT_DEPENDENCIES_KEY = "dependencies"

CONTRACT_KEYS = (
    CONTRACT_CONSTRUCTOR_PARAMETER_KEY,
    CONTRACT_TAGS_KEY,
    CONTRACT_DEPENDENCIES_KEY,
)


class VariableContext:
    """What a variable may refer to, known when declarations are loaded."""

    def __init__(
        self,
        contract_names: List[str],
        contract_name: str,
        constants: typing.Dict[str, Any] = None,
    ):
        self.contract_names = contract_names or list()
        self.contract_name = contract_name
        self.constants = constants or dict()


class ResolutionContext(NamedTuple):
    """What a variable resolves against, known only while a run executes."""

    network: str
    accounts: List[LocalAccount]
    store: DeploymentStore


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self, context: ResolutionContext) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class NamedAccount(Variable):
    def __init__(self, account_name: str):
        self.account_name = account_name

    @classmethod
    def is_named_account(cls, value: str) -> bool:
        """Returns True if the variable refers to a named account (e.g. $deployer)."""
        return value in NAMED_ACCOUNTS

    def resolve(self, context: ResolutionContext) -> Any:
        return get_named_account(context.accounts, self.account_name).address

    def __repr__(self) -> str:
        return f"${self.account_name}"


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        self.constant_name = constant_name
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise InvalidTaskError(f"Constant '{constant_name}' not found in deployment file.")

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self, context: ResolutionContext) -> Any:
        return self.constant_value

    def __repr__(self) -> str:
        return f"${self.constant_name}"


class ContractName(Variable):
    def __init__(self, contract_name: str, context: VariableContext):
        if contract_name not in context.contract_names:
            raise InvalidTaskError(
                f"Contract name {contract_name} not found "
                f"(referenced by {context.contract_name})"
            )
        self.contract_name = contract_name

    def resolve(self, context: ResolutionContext) -> Any:
        """Resolves a contract address from the records of the current network."""
        record = context.store.get(context.network, self.contract_name)
        if record is None:
            raise UnresolvedVariableError(
                f"${self.contract_name} has no recorded deployment on '{context.network}'; "
                f"is it missing from the task's dependencies?"
            )
        return record.address

    def __repr__(self) -> str:
        return f"${self.contract_name}"


def _resolve_param(value: Any, context: ResolutionContext) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v, context) for v in value]

    if isinstance(value, Variable):
        return value.resolve(context)

    return value  # literally a value


def _variable_from_value(variable: Any, context: VariableContext) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if NamedAccount.is_named_account(variable):
        return NamedAccount(variable)
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ContractName(variable, context)


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


class DeploymentTask:
    """
    One deployable contract: its constructor arguments, the tags it answers to
    and the tags that must be deployed before it.
    """

    def __init__(
        self,
        contract_name: str,
        constructor_args: Sequence[Any] = (),
        tags: Iterable[str] = (),
        dependencies: Iterable[str] = (),
        parameter_names: Optional[Sequence[str]] = None,
    ):
        if not contract_name:
            raise InvalidTaskError("Deployment task without a contract name.")
        self.contract_name = contract_name
        self.constructor_args = list(constructor_args)
        self.tags = frozenset({ALL_TAG, contract_name, *tags})
        self.dependencies = frozenset(dependencies)
        if parameter_names is not None and len(parameter_names) != len(self.constructor_args):
            raise InvalidTaskError(
                f"{contract_name} has {len(self.constructor_args)} constructor argument(s) "
                f"but {len(parameter_names)} parameter name(s)."
            )
        self.parameter_names = list(parameter_names) if parameter_names is not None else None

    def __repr__(self) -> str:
        return f"DeploymentTask({self.contract_name})"

    def resolve_args(self, context: ResolutionContext) -> List[Any]:
        """Resolves the constructor arguments, substituting variables."""
        return [_resolve_param(value, context) for value in self.constructor_args]

    def named_args(self, resolved_args: Sequence[Any]) -> "OrderedDict[str, Any]":
        names = self.parameter_names or [f"[{index}]" for index in range(len(resolved_args))]
        return OrderedDict(zip(names, resolved_args))

    def run(self, executor, profile, store):
        """Entry point: deploys this task through an executor."""
        return executor.execute(self, profile, store)


def _get_contract_names(config: typing.Dict) -> List[str]:
    contract_names = list()
    for contract_info in config["contracts"]:
        if isinstance(contract_info, str):
            contract_names.append(contract_info)
        elif isinstance(contract_info, dict):
            contract_names.extend(list(contract_info.keys()))
        else:
            raise InvalidTaskError("Malformed deployment tasks YAML.")

    return contract_names


def _string_list(value: Any, key: str, contract_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise InvalidTaskError(f"'{key}' of {contract_name} must be a list of strings.")
    return value


def _task_from_config(
    contract_name: str, contract_data: Any, variable_context: VariableContext
) -> DeploymentTask:
    contract_data = contract_data or dict()
    if not isinstance(contract_data, dict):
        raise InvalidTaskError(f"Malformed deployment task for {contract_name}.")
    unknown_keys = set(contract_data) - set(CONTRACT_KEYS)
    if unknown_keys:
        raise InvalidTaskError(
            f"Unknown key(s) for {contract_name}: {', '.join(sorted(unknown_keys))}"
        )

    raw_params = contract_data.get(CONTRACT_CONSTRUCTOR_PARAMETER_KEY) or []
    if isinstance(raw_params, dict):
        parameter_names = list(raw_params.keys())
        raw_values = list(raw_params.values())
    elif isinstance(raw_params, list):
        parameter_names = None
        raw_values = raw_params
    else:
        raise InvalidTaskError(f"Malformed constructor parameters for {contract_name}.")

    return DeploymentTask(
        contract_name=contract_name,
        constructor_args=[_process_raw_value(v, variable_context) for v in raw_values],
        tags=_string_list(contract_data.get(CONTRACT_TAGS_KEY), CONTRACT_TAGS_KEY, contract_name),
        dependencies=_string_list(
            contract_data.get(CONTRACT_DEPENDENCIES_KEY), CONTRACT_DEPENDENCIES_KEY, contract_name
        ),
        parameter_names=parameter_names,
    )


def tasks_from_config(config: typing.Dict) -> List[DeploymentTask]:
    """Builds deployment tasks from a declarations mapping, in declaration order."""
    if not isinstance(config, dict) or not config.get("contracts"):
        raise InvalidTaskError("Deployment tasks file missing 'contracts' field.")

    contract_names = _get_contract_names(config)
    constants = config.get("constants") or dict()
    tasks = list()
    for contract_info in config["contracts"]:
        if isinstance(contract_info, str):
            contract_name, contract_data = contract_info, None
        else:
            if len(contract_info) != 1:
                raise InvalidTaskError("Malformed deployment tasks YAML.")
            contract_name, contract_data = list(contract_info.items())[0]  # only one entry

        variable_context = VariableContext(
            contract_names=contract_names, contract_name=contract_name, constants=constants
        )
        tasks.append(_task_from_config(contract_name, contract_data, variable_context))

    return tasks


def load_tasks(filepath: Path) -> List[DeploymentTask]:
    """Loads deployment tasks from a YAML file."""
    print(f"Processing deployment tasks from {filepath}...")
    return tasks_from_config(_load_yaml(filepath))
