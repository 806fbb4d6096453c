"""
Configuration management for survey math.

This module provides the engine's only tunable parameters: which numeric
variables feed the clustering matrix, the k bounds of the cluster sweep,
and the thresholds of the individual analyses. Values come from defaults,
explicit overrides, or a JSON/YAML file handed over by the caller. The
engine reads no environment variables.
"""

import json
import logging
import threading
from typing import Any, Dict, List, Optional
from copy import deepcopy
import yaml

from surveymath.utils.general import deep_update

# Set up logging
logger = logging.getLogger(__name__)


def to_int(value: Any) -> Optional[int]:
    """
    Convert a value to an integer.

    Args:
        value: Value to convert

    Returns:
        Integer value, or None if conversion failed
    """
    if value is None:
        return None

    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def to_float(value: Any) -> Optional[float]:
    """
    Convert a value to a float.

    Args:
        value: Value to convert

    Returns:
        Float value, or None if conversion failed
    """
    if value is None:
        return None

    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def to_list(value: Any, separator: str = ',') -> Optional[List[str]]:
    """
    Convert a value to a list.

    Args:
        value: Value to convert
        separator: Separator for string values

    Returns:
        List value, or None if conversion failed
    """
    if value is None:
        return None

    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]

    if isinstance(value, str):
        return [item.strip() for item in value.split(separator) if item.strip()]

    return None


class Config:
    """
    Configuration manager for survey math.
    """

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.

        Args:
            overrides: Optional configuration overrides
        """
        self._lock = threading.RLock()
        self._config = {}
        self._initialized = False

        # Load configuration
        self.load_config(overrides)

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> None:
        """
        Load configuration from defaults and overrides.

        Args:
            overrides: Optional configuration overrides

        Raises:
            ValueError: If the resulting configuration is invalid
        """
        with self._lock:
            # Start with default configuration
            config = self._get_defaults()

            # Apply overrides
            if overrides:
                config = self._apply_overrides(config, overrides)

            # Normalize types and check bounds
            config = self._normalize(config)
            self._validate(config)

            # Store configuration
            self._config = config
            self._initialized = True

            logger.debug("Configuration loaded")

    def _get_defaults(self) -> Dict[str, Any]:
        """
        Get default configuration values.

        Returns:
            Default configuration
        """
        return {
            # K-means and the cluster sweep
            'clustering': {
                'variables': None,      # numeric variables in the matrix; None = all
                'k-min': 2,
                'k-max': 5,
                'min-points': 6,        # below this the sweep returns nothing
                'max-iters': 100,
                'tolerance': 0.001,     # centroid movement for convergence
                'n-init': 1,            # restarts per k, lowest inertia kept
                'random-seed': None     # None = time-based seed per analysis
            },

            # Correlation
            'correlation': {
                'min-pairs': 3
            },

            # ANOVA
            'anova': {
                'max-groups': 20        # skip categorical keys with more labels
            },

            # Presentation-only display names, passed through untouched
            'display-names': {}
        }

    def _apply_overrides(self, config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply configuration overrides.

        Args:
            config: Current configuration
            overrides: Configuration overrides

        Returns:
            Updated configuration
        """
        # Make a copy
        config = deepcopy(config)

        return deep_update(config, deepcopy(overrides))

    def _normalize(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Coerce configuration values to the types the engine expects.

        Args:
            config: Current configuration

        Returns:
            Normalized configuration
        """
        config = deepcopy(config)
        clustering = config['clustering']

        for key in ('k-min', 'k-max', 'min-points', 'max-iters', 'n-init'):
            value = to_int(clustering.get(key))
            if value is None:
                raise ValueError(f"clustering.{key} must be an integer, got {clustering.get(key)!r}")
            clustering[key] = value

        tolerance = to_float(clustering.get('tolerance'))
        if tolerance is None:
            raise ValueError(f"clustering.tolerance must be a number, got {clustering.get('tolerance')!r}")
        clustering['tolerance'] = tolerance

        if clustering.get('variables') is not None:
            clustering['variables'] = to_list(clustering['variables'])

        if clustering.get('random-seed') is not None:
            seed = to_int(clustering['random-seed'])
            if seed is None:
                raise ValueError(f"clustering.random-seed must be an integer, got {clustering['random-seed']!r}")
            clustering['random-seed'] = seed

        min_pairs = to_int(config['correlation'].get('min-pairs'))
        if min_pairs is None:
            raise ValueError("correlation.min-pairs must be an integer")
        config['correlation']['min-pairs'] = min_pairs

        max_groups = config['anova'].get('max-groups')
        if max_groups is not None:
            config['anova']['max-groups'] = to_int(max_groups)

        if config.get('display-names') is None:
            config['display-names'] = {}

        return config

    def _validate(self, config: Dict[str, Any]) -> None:
        """
        Check configuration bounds.

        Args:
            config: Normalized configuration

        Raises:
            ValueError: If a value is out of range
        """
        clustering = config['clustering']

        if clustering['k-min'] < 1:
            raise ValueError("clustering.k-min must be at least 1")
        if clustering['k-max'] < clustering['k-min']:
            raise ValueError("clustering.k-max must not be smaller than clustering.k-min")
        if clustering['max-iters'] < 1:
            raise ValueError("clustering.max-iters must be at least 1")
        if clustering['tolerance'] <= 0:
            raise ValueError("clustering.tolerance must be positive")
        if clustering['n-init'] < 1:
            raise ValueError("clustering.n-init must be at least 1")
        if config['correlation']['min-pairs'] < 3:
            raise ValueError("correlation.min-pairs must be at least 3")

        max_groups = config['anova']['max-groups']
        if max_groups is not None and max_groups < 2:
            raise ValueError("anova.max-groups must be at least 2")

        if not isinstance(config['display-names'], dict):
            raise ValueError("display-names must be a mapping")

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            path: Configuration path (dot-separated)
            default: Default value if not found

        Returns:
            Configuration value, or default if not found
        """
        if not self._initialized:
            self.load_config()

        # Split path into components
        components = path.split('.')

        # Start with full configuration
        value = self._config

        # Traverse path
        for component in components:
            if isinstance(value, dict) and component in value:
                value = value[component]
            else:
                return default

        return value

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value.

        The whole configuration is re-validated, so an invalid value raises
        ValueError and leaves the previous configuration in place.

        Args:
            path: Configuration path (dot-separated)
            value: Configuration value
        """
        with self._lock:
            if not self._initialized:
                self.load_config()

            # Build the update as a nested dict
            components = path.split('.')
            update: Dict[str, Any] = {components[-1]: value}
            for component in reversed(components[:-1]):
                update = {component: update}

            config = self._apply_overrides(self._config, update)
            config = self._normalize(config)
            self._validate(config)
            self._config = config

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to a dictionary.

        Returns:
            Configuration dictionary
        """
        if not self._initialized:
            self.load_config()

        return deepcopy(self._config)

    def save_to_file(self, filepath: str) -> None:
        """
        Save configuration to a file.

        Args:
            filepath: Path to save configuration
        """
        if not self._initialized:
            self.load_config()

        # Determine file format from extension
        if filepath.endswith('.json'):
            with open(filepath, 'w') as f:
                json.dump(self._config, f, indent=2)
        elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
            with open(filepath, 'w') as f:
                yaml.dump(self._config, f, default_flow_style=False)
        else:
            raise ValueError(f"Unsupported file format: {filepath}")

    def load_from_file(self, filepath: str) -> None:
        """
        Load configuration from a file.

        Args:
            filepath: Path to load configuration from
        """
        # Determine file format from extension
        if filepath.endswith('.json'):
            with open(filepath, 'r') as f:
                overrides = json.load(f)
        elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
            with open(filepath, 'r') as f:
                overrides = yaml.safe_load(f)
        else:
            raise ValueError(f"Unsupported file format: {filepath}")

        # Apply overrides
        self.load_config(overrides or {})
        logger.info(f"Configuration loaded from {filepath}")


class ConfigManager:
    """
    Singleton manager for configuration.
    """

    _instance = None
    _lock = threading.RLock()

    @classmethod
    def get_config(cls, overrides: Optional[Dict[str, Any]] = None) -> Config:
        """
        Get the configuration instance.

        Args:
            overrides: Optional configuration overrides

        Returns:
            Config instance
        """
        with cls._lock:
            if cls._instance is None:
                cls._instance = Config(overrides)
            elif overrides:
                cls._instance.load_config(overrides)

            return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the shared configuration instance."""
        with cls._lock:
            cls._instance = None
