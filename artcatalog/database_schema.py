"""Database schema definitions and indexes.

Kept separate from database.py so the schema constants can be read without
pulling in connection and query logic.
"""

# ---------------------------------------------------------------------------
# Schema definitions
# ---------------------------------------------------------------------------

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS series (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    description TEXT,
    start_date TEXT,
    end_date TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE COLLATE NOCASE,
    color TEXT DEFAULT '#3498db',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS gallery_images (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    filename TEXT NOT NULL,
    original_name TEXT,
    mime_type TEXT,
    file_size INTEGER,
    file_path TEXT NOT NULL,
    uploaded_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS artworks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    inventory_number TEXT UNIQUE,
    title TEXT NOT NULL,
    creation_date TEXT,
    medium TEXT,
    dimensions TEXT,
    series_id INTEGER REFERENCES series(id) ON DELETE SET NULL,
    sale_status TEXT NOT NULL DEFAULT 'available',
    price REAL,
    location TEXT,
    notes TEXT,
    is_public INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS digital_works (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    inventory_number TEXT UNIQUE,
    title TEXT NOT NULL,
    creation_date TEXT,
    file_format TEXT,
    file_size TEXT,
    dimensions TEXT,
    series_id INTEGER REFERENCES series(id) ON DELETE SET NULL,
    sale_status TEXT NOT NULL DEFAULT 'available',
    price REAL,
    license_type TEXT,
    video_url TEXT,
    embed_url TEXT,
    platform TEXT,
    nft_token_id TEXT,
    nft_contract_address TEXT,
    nft_blockchain TEXT,
    notes TEXT,
    is_public INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS exhibitions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    venue TEXT,
    start_date TEXT,
    end_date TEXT,
    description TEXT,
    curator TEXT,
    website TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS sales (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    artwork_id INTEGER REFERENCES artworks(id) ON DELETE CASCADE,
    digital_work_id INTEGER REFERENCES digital_works(id) ON DELETE CASCADE,
    sale_date TEXT NOT NULL,
    sale_price REAL,
    buyer_name TEXT,
    buyer_email TEXT,
    platform TEXT,
    notes TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    CHECK ((artwork_id IS NULL) <> (digital_work_id IS NULL))
);

CREATE TABLE IF NOT EXISTS artwork_images (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    artwork_id INTEGER NOT NULL REFERENCES artworks(id) ON DELETE CASCADE,
    image_id INTEGER NOT NULL REFERENCES gallery_images(id) ON DELETE CASCADE,
    is_primary INTEGER NOT NULL DEFAULT 0,
    display_order INTEGER NOT NULL DEFAULT 0,
    UNIQUE(artwork_id, image_id)
);

CREATE TABLE IF NOT EXISTS digital_work_images (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    digital_work_id INTEGER NOT NULL REFERENCES digital_works(id) ON DELETE CASCADE,
    image_id INTEGER NOT NULL REFERENCES gallery_images(id) ON DELETE CASCADE,
    is_primary INTEGER NOT NULL DEFAULT 0,
    display_order INTEGER NOT NULL DEFAULT 0,
    UNIQUE(digital_work_id, image_id)
);

CREATE TABLE IF NOT EXISTS artwork_tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    artwork_id INTEGER NOT NULL REFERENCES artworks(id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    UNIQUE(artwork_id, tag_id)
);

CREATE TABLE IF NOT EXISTS digital_work_tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    digital_work_id INTEGER NOT NULL REFERENCES digital_works(id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    UNIQUE(digital_work_id, tag_id)
);

CREATE TABLE IF NOT EXISTS artwork_exhibitions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    artwork_id INTEGER NOT NULL REFERENCES artworks(id) ON DELETE CASCADE,
    exhibition_id INTEGER NOT NULL REFERENCES exhibitions(id) ON DELETE CASCADE,
    UNIQUE(artwork_id, exhibition_id)
);

CREATE TABLE IF NOT EXISTS digital_work_exhibitions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    digital_work_id INTEGER NOT NULL REFERENCES digital_works(id) ON DELETE CASCADE,
    exhibition_id INTEGER NOT NULL REFERENCES exhibitions(id) ON DELETE CASCADE,
    UNIQUE(digital_work_id, exhibition_id)
);

CREATE TABLE IF NOT EXISTS location_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    artwork_id INTEGER NOT NULL REFERENCES artworks(id) ON DELETE CASCADE,
    location TEXT NOT NULL,
    notes TEXT,
    moved_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_artworks_series_id ON artworks(series_id);
CREATE INDEX IF NOT EXISTS idx_artworks_sale_status ON artworks(sale_status);
CREATE INDEX IF NOT EXISTS idx_digital_works_series_id ON digital_works(series_id);
CREATE INDEX IF NOT EXISTS idx_sales_artwork_id ON sales(artwork_id);
CREATE INDEX IF NOT EXISTS idx_sales_digital_work_id ON sales(digital_work_id);
CREATE INDEX IF NOT EXISTS idx_artwork_images_artwork ON artwork_images(artwork_id, display_order);
CREATE INDEX IF NOT EXISTS idx_digital_work_images_work ON digital_work_images(digital_work_id, display_order);
CREATE INDEX IF NOT EXISTS idx_location_history_artwork ON location_history(artwork_id);
"""
