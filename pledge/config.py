# -*- coding: utf-8 -*-

"""Manages the settings of the library.

Settings are loaded from an optional INI file (section ``[pledge]``). If an
entry is not present, a default value is provided.

By default, the file is ``pledge.ini`` in the user config directory. Nothing
is read until ``load()`` is called; before that, every entry has its default
value.
"""

import configparser
import logging
import os.path

import appdirs

_logger = logging.getLogger(__name__)

SECTION = 'pledge'

# Default config dict. Values not present in this dict are not valid.
# Each entry contains the type expected, and the default value.
_default_config = {
    'scheduler': {'type': str, 'default': 'thread'},
    'warn_on_redundant_settlement': {'type': bool, 'default': False},
}

_appdirs = appdirs.AppDirs(appname='pledge', appauthor=False)

# Actual config parser
_config_parser = configparser.ConfigParser()
_config_parser.add_section(SECTION)


def _get_config_file_path():
    return os.path.join(_appdirs.user_config_dir, 'pledge.ini')


def load(path=None):
    """Find and load the config file.

    Args:
        path (str, optional): INI file to read. By default, the file
            'pledge.ini' of the user config directory.
    Returns:
        boolean: True if the file has been read; False otherwise.
    """
    config_file_path = path or _get_config_file_path()

    try:
        found = _config_parser.read(config_file_path)
    except configparser.Error:
        _logger.warning('Unable to parse config file: %s', config_file_path,
                        exc_info=True)
        return False

    if not found:
        _logger.warning('Unable to load config file: %s', config_file_path)
        return False
    if not _config_parser.has_section(SECTION):
        _config_parser.add_section(SECTION)
    _logger.debug('Config file loaded: %s', config_file_path)
    return True


def get(key):
    """Find and return a configuration entry

    If the entry is not specified in the config file, a default value is
    returned.

    Args:
        key (string): the entry key.
    Returns:
        The corresponding value found.
    Raises:
        KeyError: if the config entry doesn't exists.
    """
    if key not in _default_config:
        raise KeyError(key)
    try:
        if _default_config[key]['type'] is bool:
            return _config_parser.getboolean(SECTION, key)
        elif _default_config[key]['type'] is int:
            return _config_parser.getint(SECTION, key)
        else:
            return _config_parser.get(SECTION, key)
    except configparser.NoOptionError:
        return _default_config[key]['default']
    except ValueError:
        _logger.warning('Invalid value for config entry "%s". The default '
                        'value is used instead.', key)
        return _default_config[key]['default']


def set(key, value):
    """Set a configuration entry.

    The change is kept in memory; use ``save()`` to write it in a file.

    Args:
        key (string): the entry key.
        value: the new value to set. It will be converted to string. If None,
            the entry is reset to its default value.
    Raises:
        KeyError: if the config entry is not valid.
    """
    if key not in _default_config:
        raise KeyError(key)
    if value is None:
        _config_parser.remove_option(SECTION, key)
    else:
        _config_parser.set(SECTION, key, str(value))


def save(path=None):
    """Write the current configuration in a file.

    Args:
        path (str, optional): destination file. By default, the file
            'pledge.ini' of the user config directory.
    Returns:
        boolean: True if the file has been written.
    """
    config_file_path = path or _get_config_file_path()
    try:
        with open(config_file_path, 'w') as config_file:
            _config_parser.write(config_file)
    except (IOError, OSError):
        _logger.warning('Unable to write in the config file', exc_info=True)
        return False
    _logger.debug('Config file written: %s', config_file_path)
    return True


def reset():
    """Forget every value set or loaded. All entries get their default."""
    for key in _default_config:
        _config_parser.remove_option(SECTION, key)
