import pytest

from clipstash.classifier import classify, count_keywords, resolve_display_mode, symbol_density
from clipstash.models import DisplayMode, Entry, FilePathsContent, FileRef, ImageContent, TextContent


class TestShortInput:
    @pytest.mark.parametrize("text", ["", "   ", "hi", "{}", "# a", "x = 1;"])
    def test_short_text_is_plain(self, text):
        assert classify(text) == DisplayMode.PLAIN

    def test_whitespace_does_not_count_toward_length(self):
        assert classify("   # hi   \n\n") == DisplayMode.PLAIN


class TestStructuredFormats:
    def test_json_object(self):
        assert classify('{"name": "clipstash", "tags": [1, 2, 3]}') == DisplayMode.CODE

    def test_json_array(self):
        assert classify('[{"id": 1}, {"id": 2}]') == DisplayMode.CODE

    def test_markup(self):
        assert classify("<div class='row'>hello there</div>") == DisplayMode.CODE

    def test_shebang_wins_over_markdown_heading(self):
        assert classify("#!/bin/bash\necho 'hello world'") == DisplayMode.CODE


class TestMarkdown:
    def test_heading_prefix(self):
        assert classify("# Release notes\n\nEverything is faster now") == DisplayMode.MARKDOWN

    def test_list_after_newline(self):
        assert classify("Shopping list:\n- apples\n- pears") == DisplayMode.MARKDOWN

    def test_ordered_list_prefix(self):
        assert classify("1. Open the app and wait") == DisplayMode.MARKDOWN

    def test_ordered_list_later_item(self):
        assert classify("Steps to follow\n12. press the button") == DisplayMode.MARKDOWN

    def test_link_syntax(self):
        assert classify("Read [the docs](https://example.com) first") == DisplayMode.MARKDOWN

    def test_code_fence(self):
        assert classify("Run this:\n```\nmake all\n```") == DisplayMode.MARKDOWN

    def test_table_pipe(self):
        assert classify("name | value\nfoo | bar") == DisplayMode.MARKDOWN

    def test_invalid_json_with_backticks_is_markdown(self):
        assert classify("{ use `npm install` first }") == DisplayMode.MARKDOWN


class TestCodeHeuristics:
    def test_keywords(self):
        text = "import os\nclass Loader:\n    def load(self):\n        return os.getcwd()"
        assert count_keywords(text) >= 3
        assert classify(text) == DisplayMode.CODE

    def test_keywords_are_whole_tokens(self):
        # "classic", "imported", "variable" and "default" must not count
        assert count_keywords("classic imported variable default") == 0

    def test_python_control_flow(self):
        text = (
            "while True:\n"
            "    try:\n"
            "        item = next(it)\n"
            "    except StopIteration:\n"
            "        break\n"
            "    if item:\n"
            "        return item"
        )
        assert count_keywords(text) >= 3
        assert classify(text) == DisplayMode.CODE

    def test_javascript_function(self):
        text = "function greet(name) {\n  if (name) {\n    return 'hi ' + name\n  }\n}"
        assert classify(text) == DisplayMode.CODE

    def test_prose_with_few_keywords_stays_plain(self):
        assert count_keywords("Thanks for the update, see you soon") == 1
        assert classify("Thanks for the update, see you soon") == DisplayMode.PLAIN

    def test_symbol_density(self):
        text = "total = (price + tax) * qty / 100;"
        assert symbol_density(text) > 0.07
        assert classify(text) == DisplayMode.CODE

    def test_block_comment(self):
        text = "/* remember to rotate the credentials before the release goes out next week */"
        assert classify(text) == DisplayMode.CODE

    def test_line_comment_on_first_line(self):
        assert classify("// remember to rotate the credentials before the release goes out") == DisplayMode.CODE


class TestPlainText:
    @pytest.mark.parametrize(
        "text",
        [
            "The quick brown fox jumps over the lazy dog",
            "Hello, how are you doing today?",
            "Lunch with Sam on Friday sounds great.",
            "Meeting moved to Thursday at the usual place.",
        ],
    )
    def test_prose_is_plain(self, text):
        assert classify(text) == DisplayMode.PLAIN


class TestDeterminism:
    def test_same_input_same_output(self):
        text = "def main():\n    print('hi')"
        assert classify(text) == classify(text)

    def test_never_returns_auto(self):
        for text in ("", "plain words here ok", "{\"a\": 1, \"b\": 2}", "# heading text here"):
            assert classify(text) != DisplayMode.AUTO


class TestResolveDisplayMode:
    def test_explicit_mode_is_kept(self):
        entry = Entry(content=TextContent('{"a": 1, "b": 2}'), display_mode=DisplayMode.PLAIN)
        assert resolve_display_mode(entry) == DisplayMode.PLAIN

    def test_auto_classifies_text(self):
        entry = Entry(content=TextContent('{"a": 1, "b": 2}'))
        assert resolve_display_mode(entry) == DisplayMode.CODE

    def test_auto_image_uses_preview(self):
        entry = Entry(content=ImageContent(b"not really an image"))
        assert resolve_display_mode(entry) == DisplayMode.PLAIN

    def test_auto_files_classify_path_list(self):
        refs = (FileRef("/Users/me/notes.txt", b"/Users/me/notes.txt"),)
        entry = Entry(content=FilePathsContent(refs))
        # A path is dense in "/" characters
        assert resolve_display_mode(entry) == DisplayMode.CODE
