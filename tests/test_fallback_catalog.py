import unittest

from tunescout.models.search_request import SearchKind
from tunescout.models.track import RecordShape
from tunescout.sources.fallback_catalog import FallbackCatalog
from tunescout.utils.youtube import build_embed_url, build_watch_url, extract_video_id


class TestFallbackCatalog(unittest.TestCase):
    def setUp(self):
        self.catalog = FallbackCatalog()

    def test_track_lookup_matches_title_or_artist_case_insensitively(self):
        out = self.catalog.lookup("queen", RecordShape.TRACK)
        self.assertEqual([(t.title, t.artist) for t in out], [("Bohemian Rhapsody", "Queen")])

        out = self.catalog.lookup("HOTEL", RecordShape.TRACK)
        self.assertEqual([t.title for t in out], ["Hotel California"])

    def test_track_lookup_matches_every_entry_containing_the_text(self):
        out = self.catalog.lookup("the", RecordShape.TRACK)
        expected = [
            t for t in self.catalog.tracks
            if "the" in t.title.lower() or "the" in t.artist.lower()
        ]
        self.assertEqual(out, expected)
        self.assertIn("Yesterday", [t.title for t in out])

    def test_unmatched_track_lookup_returns_whole_catalog(self):
        # Tracks fall back to the full catalog while suggestions come back empty.
        tracks = self.catalog.lookup("zzz-nonexistent", RecordShape.TRACK)
        self.assertEqual(len(tracks), 10)
        self.assertEqual(tracks, self.catalog.tracks)

        suggestions = self.catalog.lookup("zzz-nonexistent", RecordShape.SUGGESTION)
        self.assertEqual(suggestions, [])

    def test_genre_matching_is_opt_in(self):
        self.assertEqual(len(self.catalog.lookup("grunge", RecordShape.TRACK)), 10)
        out = self.catalog.lookup("GRUNGE", RecordShape.TRACK, match_genre=True)
        self.assertEqual([t.title for t in out], ["Smells Like Teen Spirit"])
        out = self.catalog.lookup("rock", RecordShape.TRACK, match_genre=True)
        self.assertEqual({t.genre for t in out}, {"rock"})
        self.assertEqual(len(out), 5)

    def test_empty_query_asymmetry(self):
        self.assertEqual(len(self.catalog.lookup("", RecordShape.TRACK)), 10)
        self.assertEqual(self.catalog.lookup("", RecordShape.SUGGESTION), [])
        self.assertEqual(self.catalog.lookup("   ", RecordShape.SUGGESTION, SearchKind.SONG), [])

    def test_suggestions_default_to_artists(self):
        out = self.catalog.lookup("pink", RecordShape.SUGGESTION)
        self.assertEqual([s.value for s in out], ["Pink Floyd"])
        out = self.catalog.lookup("elvis", RecordShape.SUGGESTION, SearchKind.ARTIST)
        self.assertEqual([s.label for s in out], ["Elvis Presley"])

    def test_song_suggestions_carry_artist_in_label(self):
        out = self.catalog.lookup("lennon", RecordShape.SUGGESTION, SearchKind.SONG)
        self.assertEqual(len(out), 1)
        self.assertEqual(out[0].value, "Imagine")
        self.assertEqual(out[0].label, "Imagine - John Lennon")

    def test_suggestions_capped_at_eight(self):
        out = self.catalog.lookup("e", RecordShape.SUGGESTION, SearchKind.SONG)
        self.assertEqual(len(out), 8)

    def test_every_catalog_track_has_playable_reference(self):
        for track in self.catalog.tracks:
            self.assertTrue(track.title)
            self.assertTrue(track.artist)
            self.assertEqual(track.video_url, build_watch_url(track.video_id))
            self.assertEqual(extract_video_id(track.video_url), track.video_id)
            self.assertEqual(track.embed_url, build_embed_url(track.video_id))


class TestVideoReferences(unittest.TestCase):
    def test_extract_video_id_variants(self):
        self.assertEqual(extract_video_id("https://www.youtube.com/watch?v=fJ9rUzIMcZQ&t=10"), "fJ9rUzIMcZQ")
        self.assertEqual(extract_video_id("https://youtu.be/YkgkThdzX-8"), "YkgkThdzX-8")
        self.assertEqual(extract_video_id("https://www.youtube.com/embed/BciS5krYL80?autoplay=1"), "BciS5krYL80")
        self.assertEqual(extract_video_id("QkF3oxziUI4"), "QkF3oxziUI4")
        self.assertIsNone(extract_video_id("https://example.com/video"))
        self.assertIsNone(extract_video_id(""))

    def test_embed_url_template(self):
        self.assertEqual(
            build_embed_url("abc"),
            "https://www.youtube.com/embed/abc?autoplay=1&controls=1&rel=0&modestbranding=1&showinfo=0",
        )


if __name__ == "__main__":
    unittest.main()
