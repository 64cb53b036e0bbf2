"""Formatting helpers shared by the fixture hooks"""


def fmt(value):
    return f"[{value}]"


def shout(value):
    return str(value).upper()


module.exports = {'fmt': fmt, 'shout': shout}
