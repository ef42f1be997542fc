#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from pairwise.PairwiseClasses import CigarOperation, MalformedCigar, CIGAR_KINDS

UNMAPPED_CIGAR = '*'


def parse_cigar(cigar: str):
    '''
    Decodes a CIGAR string into a list of CigarOperation objects.
    The unmapped marker ('*') and the empty string both decode to an empty list.

    Raises MalformedCigar for an operation without a length, a zero length,
    trailing digits with no operation, or any character outside [0-9MIDNSHP=X].
    '''
    if cigar == UNMAPPED_CIGAR or cigar == '':
        return []
    ops = []
    length_str = ''
    for i, char in enumerate(cigar):
        if char.isdigit() and char.isascii():
            length_str += char
        elif char in CIGAR_KINDS:
            if not length_str:
                raise MalformedCigar(f"CIGAR operation '{char}' at index {i} has no preceding length")
            length = int(length_str)
            if length <= 0:
                raise MalformedCigar(f"invalid non-positive CIGAR length {length} for operation '{char}'")
            ops.append(CigarOperation(length, char))
            length_str = ''
        else:
            raise MalformedCigar(f"invalid character '{char}' in CIGAR string at index {i}")
    if length_str:
        raise MalformedCigar(f"CIGAR string ends with an incomplete operation (number '{length_str}' without type)")
    return ops

def cigar_to_string(ops: list):
    '''Inverse of parse_cigar. An empty list gives back the unmapped marker.'''
    if not ops:
        return UNMAPPED_CIGAR
    return ''.join(str(op) for op in ops)

def query_length(ops: list):
    '''Number of SEQ bases the operations expect (M, I, S, = and X).'''
    return sum(op.length for op in ops if op.consumes_query())

def reference_length(ops: list):
    return sum(op.length for op in ops if op.consumes_reference())
