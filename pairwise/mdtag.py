#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from enum import Enum

from pairwise.PairwiseClasses import MatchRun, Mismatch, Deletion, MalformedMdTag


class MdState(Enum):
    EXPECTING_NUMBER = 'expecting_number'
    JUST_READ_MISMATCH_BASE = 'just_read_mismatch_base'
    JUST_SAW_DELETION_MARKER = 'just_saw_deletion_marker'
    ACCUMULATING_DELETION_BASES = 'accumulating_deletion_bases'


def _is_base(char: str):
    return char.isascii() and char.isalpha()

def _is_digit(char: str):
    return char.isascii() and char.isdigit()


class MdTagParser:
    '''
    Single-pass automaton over an MD:Z value.

    The tag mixes match counts, single mismatch bases and `^`-prefixed deletions with no
    separators, so every state transition flushes whatever token was pending and then
    re-dispatches the current character. Each state has exactly one handler below.
    '''
    def __init__(self, md_tag: str):
        self.md_tag = md_tag
        self.state = MdState.EXPECTING_NUMBER
        self.entries = []
        self.pending = ''
        self.position = 0

    def __str__(self):
        str = f'''
        md_tag\tstate\tposition\tpending\tnum_entries
        {self.md_tag}\t{self.state.value}\t{self.position}\t{self.pending}\t{len(self.entries)}
        '''
        return(str)

    def parse(self):
        handlers = {
            MdState.EXPECTING_NUMBER: self._expecting_number,
            MdState.JUST_READ_MISMATCH_BASE: self._just_read_mismatch_base,
            MdState.JUST_SAW_DELETION_MARKER: self._just_saw_deletion_marker,
            MdState.ACCUMULATING_DELETION_BASES: self._accumulating_deletion_bases,
        }
        for self.position, char in enumerate(self.md_tag):
            handlers[self.state](char)
        self._finish()
        return self.entries

    def _fail(self, message: str, char):
        raise MalformedMdTag(f"{message} in MD tag '{self.md_tag}' at position {self.position}", char=char, position=self.position)

    def _flush_number(self):
        # a literal 0 is kept: it sits between two events with no matching bases in between
        if self.pending:
            self.entries.append(MatchRun(int(self.pending)))
            self.pending = ''

    def _flush_mismatch(self):
        self.entries.append(Mismatch(self.pending))
        self.pending = ''

    def _flush_deletion(self):
        self.entries.append(Deletion(self.pending))
        self.pending = ''

    def _after_token(self, char: str, what: str):
        '''Shared re-dispatch once a mismatch or deletion token has been flushed.'''
        if _is_digit(char):
            self.pending = char
            self.state = MdState.EXPECTING_NUMBER
        elif char == '^':
            self.state = MdState.JUST_SAW_DELETION_MARKER
        else:
            self._fail(f"unexpected character '{char}' after {what}", char)

    def _expecting_number(self, char: str):
        if _is_digit(char):
            self.pending += char
            return
        self._flush_number()
        if char == '^':
            self.state = MdState.JUST_SAW_DELETION_MARKER
        elif _is_base(char):
            self.pending = char
            self.state = MdState.JUST_READ_MISMATCH_BASE
        else:
            self._fail(f"unexpected character '{char}' after number", char)

    def _just_read_mismatch_base(self, char: str):
        # a second letter here would make a multi-base mismatch, which MD cannot express
        self._flush_mismatch()
        self._after_token(char, 'mismatch base')

    def _just_saw_deletion_marker(self, char: str):
        if not _is_base(char):
            self._fail(f"expected a base after deletion marker '^', got '{char}'", char)
        self.pending = char
        self.state = MdState.ACCUMULATING_DELETION_BASES

    def _accumulating_deletion_bases(self, char: str):
        if _is_base(char):
            self.pending += char
            return
        self._flush_deletion()
        self._after_token(char, 'deletion sequence')

    def _finish(self):
        if self.state == MdState.EXPECTING_NUMBER:
            self._flush_number()
        elif self.state == MdState.ACCUMULATING_DELETION_BASES:
            self._flush_deletion()
        elif self.state == MdState.JUST_READ_MISMATCH_BASE:
            self.position = len(self.md_tag)
            self._fail('tag ends immediately after a mismatch base', None)
        elif self.state == MdState.JUST_SAW_DELETION_MARKER:
            self.position = len(self.md_tag)
            self._fail("tag ends with deletion marker '^'", None)


def parse_md_tag(md_tag: str):
    '''
    Decodes an MD:Z value into MatchRun / Mismatch / Deletion entries.
    The empty string is valid and gives an empty list. Raises MalformedMdTag otherwise.
    '''
    if not md_tag:
        return []
    return MdTagParser(md_tag).parse()

def md_entries_to_string(entries: list):
    '''Concatenates entries back into MD form; the inverse of parse_md_tag for valid tags.'''
    return ''.join(str(entry) for entry in entries)

def md_reference_length(entries: list):
    '''Number of reference bases the entries describe (matches, mismatches and deleted bases).'''
    total = 0
    for entry in entries:
        if isinstance(entry, MatchRun):
            total += entry.count
        elif isinstance(entry, Mismatch):
            total += 1
        else:
            total += len(entry.reference_bases)
    return total
