"""SecureKey Meta information.
   SecureKey is a local encrypted credential vault with a TOTP engine.
"""
__title__ = 'securekey'
__description__ = (
   'Local encrypted credential vault with a companion '
   'time-based one-time password engine.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
