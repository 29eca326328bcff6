""" Identity handling: key pairs, event signing, and the bech32 text forms
    (``npub``, ``nsec``) used to exchange public and secret keys with
    people. The cryptography is delegated entirely to :mod:`coincurve`;
    nothing here implements or validates the signature scheme itself.
"""

import secrets

import bech32
import coincurve


class SigningError(Exception):
    """ An event could not be signed.
    """


class Identity:
    """ An :class:`Identity` holds the secret key for this process and the
        public key derived from it. The *secret* is 32 bytes; the public
        key is exposed as lowercase hex via the :attr:`public` attribute,
        which is the form used to address events.
    """

    def __init__(self, secret):

        if isinstance(secret, str):
            secret = bytes.fromhex(secret)

        if len(secret) != 32:
            raise ValueError('secret keys are 32 bytes, not %d' % (len(secret)))

        self._key = coincurve.PrivateKey(secret)
        self.public = self._key.public_key_xonly.format().hex()


    def __repr__(self):
        return 'Identity(%s)' % (self.public)


    @property
    def secret(self):
        return self._key.secret


    def sign(self, event):
        """ Claim the *event* for this identity, compute its id, and attach
            a Schnorr signature over that id. The event is modified in place
            and returned for convenience.
        """

        if event.pubkey is None:
            event.pubkey = self.public
        elif event.pubkey != self.public:
            raise SigningError('event pubkey %s does not belong to this identity' % (event.pubkey))

        try:
            id = event.compute_id()
            signature = self._key.sign_schnorr(bytes.fromhex(id), secrets.token_bytes(32))
        except (ValueError, TypeError) as e:
            raise SigningError('unable to sign event: ' + str(e)) from e

        event.id = id
        event.sig = signature.hex()
        return event


# end of class Identity



def generate():
    """ Return a freshly generated :class:`Identity`.
    """

    key = coincurve.PrivateKey()
    return Identity(key.secret)



def verify(event):
    """ Return True if the *event* id matches its contents and the signature
        is valid for the event's pubkey. Any malformed field yields False.
    """

    try:
        if event.compute_id() != event.id:
            return False

        public = coincurve.PublicKeyXOnly(bytes.fromhex(event.pubkey))
        return public.verify(bytes.fromhex(event.sig), bytes.fromhex(event.id))
    except (ValueError, TypeError, RuntimeError):
        return False



def decode_identifier(encoded, prefix='npub'):
    """ Translate a bech32 identifier, such as an ``npub`` public key, into
        the lowercase hex form used on the wire. A ValueError is raised if
        the identifier is not valid bech32, carries the wrong *prefix*, or
        does not decode to 32 bytes.
    """

    hrp, data = bech32.bech32_decode(encoded)

    if hrp is None:
        raise ValueError('not a valid bech32 identifier: ' + repr(encoded))

    if prefix is not None and hrp != prefix:
        raise ValueError("expected a '%s' identifier, got '%s'" % (prefix, hrp))

    decoded = bech32.convertbits(data, 5, 8, False)

    if decoded is None or len(decoded) != 32:
        raise ValueError('identifier does not encode a 32 byte key: ' + repr(encoded))

    return bytes(decoded).hex()



def encode_identifier(hex_key, prefix='npub'):
    """ The inverse of :func:`decode_identifier`.
    """

    raw = bytes.fromhex(hex_key)
    data = bech32.convertbits(raw, 8, 5, True)
    return bech32.bech32_encode(prefix, data)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
