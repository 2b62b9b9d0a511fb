from asyncblobfs.paths import blob_path, decode_path, encode_path


def test_separators_are_preserved():
    assert encode_path("/container/dir/file.txt") == "/container/dir/file.txt"


def test_segments_are_encoded_individually():
    assert encode_path("/c/my dir/a+b&c.txt") == "/c/my%20dir/a%2Bb%26c.txt"


def test_reserved_characters_are_escaped():
    # quote() leaves these alone by default
    assert encode_path("/c/a:b@c,d;e=f!g") == "/c/a%3Ab%40c%2Cd%3Be%3Df%21g"


def test_unreserved_characters_pass_through():
    assert encode_path("/c/a-b_c.d~e") == "/c/a-b_c.d~e"


def test_unicode_is_utf8_encoded():
    assert encode_path("/c/été.txt") == "/c/%C3%A9t%C3%A9.txt"


def test_decode_reverses_encode():
    path = "/c/some dir/ünï/a%b.txt"
    assert decode_path(encode_path(path)) == path


def test_blob_path_strips_leading_slashes():
    assert blob_path("container", "//dir/a.txt") == "/container/dir/a.txt"
    assert blob_path("container", "") == "/container/"
