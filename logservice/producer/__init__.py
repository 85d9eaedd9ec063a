"""Batching log producer that delivers logs through a caller-supplied client on background threads."""