# Vulture whitelist - known false positives
# These are used by frameworks or Python protocols, not dead code

# Pydantic model_config (used by Pydantic, not called directly)
model_config  # type: ignore

# Typer CLI commands (decorated, called by framework)
main  # type: ignore
env_init  # type: ignore
env_ls  # type: ignore
env_show  # type: ignore
env_config  # type: ignore
env_rm  # type: ignore

# Pydantic validators (called by Pydantic during validation)
_reject_unknown_fields  # type: ignore
validate_state_dir  # type: ignore
validate_backup_suffix  # type: ignore
normalize_level  # type: ignore

# structlog processor signature (positional parameters required by structlog)
method_name  # type: ignore

# Codec protocol attribute (read through FormatResolver)
extension  # type: ignore
