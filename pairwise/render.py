#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from html import escape

from termcolor import colored

from pairwise.PairwiseClasses import AlignmentResult, Role

# Background used when a base is highlighted
BASE_BACKGROUNDS = {
    'A': 'on_red',
    'T': 'on_green',
    'G': 'on_yellow',
    'C': 'on_blue',
}
DIMMED_CHARS = 'Nn.'
HIGHLIGHT_ROLES = (Role.MISMATCH, Role.MATCH_OF_INTEREST)


class PlainFormatter:
    '''
    Drops all styling. Also the base class: subclasses only override `format_segment`
    and, for whole documents, `header`/`footer`.
    '''
    name = 'plain'

    def header(self):
        return ''

    def footer(self):
        return ''

    def format_info(self, info_line: str):
        return info_line

    def format_segment(self, segment):
        return segment.text

    def format_track(self, segments: list):
        return ''.join(self.format_segment(seg) for seg in segments)

    def format_record(self, info_line: str, result: AlignmentResult):
        '''
        Four lines per record (info, query, marker, reference) and a blank separator line.
        '''
        lines = [
            self.format_info(info_line),
            self.format_track(result.query),
            self.format_track(result.marker),
            self.format_track(result.reference),
            '',
        ]
        return '\n'.join(lines) + '\n'


class TerminalFormatter(PlainFormatter):
    '''
    ANSI colours through termcolor. termcolor already honours NO_COLOR / FORCE_COLOR and
    skips colour when stdout is not a tty; `force_color` overrides that for pipes into `less -R`.
    '''
    name = 'terminal'

    def __init__(self, force_color=None, no_color=None):
        self.force_color = force_color
        self.no_color = no_color

    def _colored(self, text: str, color=None, on_color=None, attrs=None):
        return colored(text, color, on_color, attrs, no_color=self.no_color, force_color=self.force_color)

    def format_info(self, info_line: str):
        return self._colored(info_line, 'dark_grey', attrs=['italic'])

    def format_segment(self, segment):
        text = segment.text
        role = segment.role
        if role == Role.LOW_QUALITY:
            return self._colored(text, 'cyan')
        if role == Role.SKIPPED or (text and all(char in DIMMED_CHARS for char in text)):
            return self._colored(text, 'dark_grey')
        if role in HIGHLIGHT_ROLES:
            on_color = BASE_BACKGROUNDS.get(text.upper())
            if on_color is None:
                return text
            return self._colored(text, on_color=on_color)
        if role == Role.GAP:
            return self._colored(text, on_color='on_black')
        if role == Role.PADDING:
            return self._colored(text, on_color='on_magenta')
        return text


class HtmlFormatter(PlainFormatter):
    '''
    Wraps styled cells in <span> elements; one <pre> block per record.
    '''
    name = 'html'

    style = '''<style>
.s2p-record { font-family: monospace; }
.s2p-info { color: #777; font-style: italic; }
.s2p-lowQuality { color: #00aaaa; }
.s2p-skipped { color: #777; }
.s2p-gap { background: #000; color: #fff; }
.s2p-padding { background: #a0a; color: #fff; }
.s2p-base-A { background: #c00; }
.s2p-base-T { background: #0a0; }
.s2p-base-G { background: #cc0; }
.s2p-base-C { background: #00c; color: #fff; }
</style>'''

    def header(self):
        return f'<!DOCTYPE html>\n<html>\n<head>\n<meta charset="utf-8">\n{self.style}\n</head>\n<body>\n'

    def footer(self):
        return '</body>\n</html>\n'

    def format_info(self, info_line: str):
        return f'<span class="s2p-info">{escape(info_line)}</span>'

    def format_segment(self, segment):
        text = escape(segment.text)
        if segment.role == Role.PLAIN:
            return text
        classes = [f's2p-{segment.role.value}']
        if segment.role in HIGHLIGHT_ROLES and segment.text.upper() in BASE_BACKGROUNDS:
            classes.append(f's2p-base-{segment.text.upper()}')
        return f'<span class="{" ".join(classes)}">{text}</span>'

    def format_record(self, info_line: str, result: AlignmentResult):
        return f'<pre class="s2p-record">\n{super().format_record(info_line, result)}</pre>\n'


FORMATTERS = {
    'terminal': TerminalFormatter,
    'plain': PlainFormatter,
    'html': HtmlFormatter,
}

def get_formatter(name: str, **kwargs):
    '''Looks up a formatter by its command-line name.'''
    try:
        formatter_class = FORMATTERS[name]
    except KeyError:
        raise ValueError(f"Unknown output format '{name}'. Choose from: {', '.join(FORMATTERS)}") from None
    if formatter_class is TerminalFormatter:
        return formatter_class(**kwargs)
    return formatter_class()
