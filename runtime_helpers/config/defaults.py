"""
Centralized configuration defaults for the runtime helpers.

Single Source of Truth: change these values once and every component that
reads HelperSettings picks them up. Environment variables or a settings file
override them at runtime (see settings.py).
"""


class HelperDefaults:
    """
    Default operational settings.

    Overrides:
    - RUNTIME_HELPERS_LOG_LEVEL=DEBUG
    - RUNTIME_HELPERS_XML_RECOVER=true
    """

    # Logging
    LOG_LEVEL = "WARNING"  # CRITICAL, ERROR, WARNING, INFO, DEBUG

    # XML parsing
    XML_RECOVER = False  # Strict parsing: malformed documents yield no results
    XML_HUGE_TREE = False  # Lift libxml2 depth/size limits for very large documents
    XML_INDENT = True  # Pretty print serialized objects

    # Table marshalling
    ADD_MISSING_COLUMNS = True  # Create columns for unmapped properties when appending objects
    BASIC_VALUE_COLUMN = "Value"  # Column created for scalar items appended to an empty table

    @classmethod
    def to_dict(cls) -> dict:
        """
        Export all defaults as a dictionary.

        Returns:
            Dictionary of all HelperDefaults class attributes.
        """
        return {
            key: getattr(cls, key)
            for key in dir(cls)
            if not key.startswith('_') and key.isupper()
        }

    @classmethod
    def log_summary(cls, logger=None):
        """
        Log a summary of all defaults.

        Args:
            logger: Optional logger instance. If None, prints to stdout.
        """
        config_dict = cls.to_dict()
        summary = "\n".join([f"  {key}: {value}" for key, value in sorted(config_dict.items())])
        message = f"Runtime Helper Defaults:\n{summary}"

        if logger:
            logger.info(message)
        else:
            print(message)
