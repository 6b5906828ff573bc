"""
Sopsedit edits sops encrypted YAML and JSON files as plaintext.

Opening an encrypted file decrypts it in memory with 'sops --decrypt'. Saving it
re-encrypts the new contents with 'sops edit', using a stand-in editor that
copies the plaintext into place, so decrypted plaintext is never written next
to the encrypted file. Saving an unmodified file does nothing, which avoids
re-encrypting with a new nonce and creating a noisy diff.

List encrypted files in the current git repository:

\b
    $ sopsedit ls

Print the decrypted contents of an encrypted file:

\b
    $ sopsedit cat "secrets.yaml"

Edit an encrypted file in your $EDITOR:

\b
    $ sopsedit edit "secrets.yaml"

Treat other file names as a supported format:

\b
    $ export SOPSEDIT_FILETYPES="*.sops=yaml"
"""

__version__ = '1.0.0'
