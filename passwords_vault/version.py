"""PassWords Vault Meta information.
   PassWords Vault keeps named, password-derived encrypted credential vaults.
"""
__title__ = 'passwords_vault'
__description__ = (
   'PassWords Vault keeps named, password-derived encrypted '
   'credential vaults with optional TOTP second factor.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2024 PassWords Vault Authors'
__author__ = 'PassWords Vault Authors'
__author_email__ = 'maintainers@passwords-vault.dev'
__license__ = 'MIT'
__url__ = 'https://github.com/passwords-vault/passwords-vault'
