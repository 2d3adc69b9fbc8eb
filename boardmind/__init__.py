"""BoardMind - spatial diagram editor for sticky-note boards, site maps and impact maps."""

__version__ = "1.0.0"
__app_id__ = "io.github.boardmind.BoardMind"
