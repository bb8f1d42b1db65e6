from os import environ

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError

from dont_forget.helpers.config_models.root import RootModel


def init_env() -> None:
    """
    Load the ".env" file, if any, before reading the config.
    """
    path = find_dotenv()
    if not path:
        return
    load_dotenv(path)
    print(f'Env file loaded from "{path}"')  # noqa: T201


def load_config() -> RootModel:
    """
    Load the config, from the "CONFIG_JSON" env first, then from a YAML file.

    YAML file name can be overridden with the "CONFIG_FILE" env, default is "config.yaml". File is searched from the package folder up to the root.
    """
    config: RootModel | None = None
    config_env = "CONFIG_JSON"
    config_file = environ.get("CONFIG_FILE", "config.yaml")

    # Try to load JSON from env
    if config_env in environ:
        # Validate
        config = RootModel.model_validate_json(environ[config_env])
        print(f'Config loaded from env "{config_env}"')  # noqa: T201
        return config

    # Try to load YAML from file
    print(f'Cannot find env "{config_env}", trying to load from file')  # noqa: T201
    path = find_dotenv(filename=config_file)

    # Raise error if file not found
    if not path:
        raise ValueError(f'Cannot find config file "{config_file}"')

    # Load config from file
    with open(
        encoding="utf-8",
        file=path,
    ) as f:
        # Validate, an empty file is a valid config as all sections have defaults
        config = RootModel.model_validate(yaml.safe_load(f) or {})
        print(f'Config loaded from file "{path}"')  # noqa: T201
        return config


# Load config
init_env()
try:
    CONFIG = load_config()

# Pretty print validation errors
except ValidationError as e:
    err = "Config values are not valid:"
    for i, error in enumerate(e.errors()):
        err += f"\n{i + 1}. At {'.'.join(str(loc) for loc in error['loc'])}: {error['msg']} (input value: {error['input']})"
    raise ValueError(err)
